"""Round-trip tests: parse_annotated(render_annotated(m)) == m."""

from __future__ import annotations

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from calmsync.builder import with_owner
from calmsync.parser import parse_annotated
from calmsync.reference import build_architecture
from calmsync.render.annotated import render_annotated
from calmsync.schema import (
    Architecture,
    Control,
    Interface,
    Node,
    NodeType,
    Requirement,
    TransitionDirection,
)

# ── Strategies ───────────────────────────────────────

# Ids mix plain words with the characters that need quoting or escaping in D2.
_IDS = st.text(alphabet=st.sampled_from("ab1-_:#. {}\"\\>="), min_size=1, max_size=8)
_TEXT = st.text(
    alphabet=st.characters(exclude_categories=("Cs",)),
    max_size=20,
)
_SCALARS = st.one_of(
    st.booleans(),
    st.integers(min_value=-(2**31), max_value=2**31),
    st.floats(allow_nan=False, allow_infinity=False),
    _TEXT,
)
_JSON = st.recursive(
    _SCALARS,
    lambda inner: st.one_of(
        st.lists(inner, max_size=3),
        st.dictionaries(_TEXT, inner, max_size=3),
    ),
    max_leaves=6,
)
_METADATA = st.dictionaries(_TEXT, _JSON, max_size=3)


@st.composite
def _controls(draw) -> dict[str, Control]:
    requirements = st.builds(
        Requirement,
        requirement_url=_TEXT,
        config=st.one_of(st.none(), st.dictionaries(_TEXT, _SCALARS, max_size=2)),
        config_url=st.one_of(st.none(), _TEXT),
    )
    return draw(
        st.dictionaries(
            _IDS,
            st.builds(Control, description=_TEXT, requirements=st.lists(requirements, max_size=2)),
            max_size=2,
        )
    )


@st.composite
def architectures(draw) -> Architecture:
    arch = Architecture(
        unique_id=draw(_IDS),
        name=draw(_TEXT),
        description=draw(_TEXT),
        adrs=draw(st.lists(_TEXT, max_size=2)),
        metadata=draw(_METADATA),
        controls=draw(_controls()),
    )
    node_ids = draw(st.lists(_IDS, min_size=1, max_size=6, unique=True))
    for node_id in node_ids:
        arch.add_node(
            Node(
                unique_id=node_id,
                node_type=draw(st.sampled_from(list(NodeType))),
                name=draw(_TEXT),
                description=draw(_TEXT),
                owner=draw(st.one_of(st.none(), _TEXT)),
                cost_center=draw(st.one_of(st.none(), _TEXT)),
                metadata=draw(_METADATA),
                interfaces=draw(
                    st.lists(
                        st.builds(
                            Interface,
                            unique_id=_IDS,
                            protocol=st.one_of(st.none(), _TEXT),
                            port=st.one_of(st.none(), st.integers(0, 65535)),
                        ),
                        max_size=2,
                    )
                ),
                controls=draw(_controls()),
            )
        )

    rel_ids = draw(st.lists(_IDS, max_size=6, unique=True))
    node_pick = st.sampled_from(node_ids)
    optional_text = st.one_of(st.none(), _TEXT)
    for rel_id in rel_ids:
        fields = {
            "protocol": draw(optional_text),
            "data_classification": draw(optional_text),
            "encrypted": draw(st.one_of(st.none(), st.booleans())),
            "metadata": draw(_METADATA),
        }
        kind = draw(st.sampled_from(["connects", "interacts", "composed-of"]))
        description = draw(_TEXT)
        if kind == "connects":
            interfaces = st.one_of(st.none(), st.lists(_IDS, max_size=2))
            arch.connect(
                rel_id, description, draw(node_pick), draw(node_pick),
                source_interfaces=draw(interfaces), destination_interfaces=draw(interfaces), **fields,
            )
        elif kind == "interacts":
            targets = draw(st.lists(node_pick, max_size=3))
            arch.interacts(rel_id, description, draw(node_pick), targets, **fields)
        else:
            arch.composed_of(rel_id, description, draw(node_pick), draw(st.lists(node_pick, max_size=3)), **fields)

    for flow_id in draw(st.lists(_IDS, max_size=2, unique=True)):
        flow = arch.define_flow(flow_id, draw(_TEXT), draw(_TEXT), metadata=draw(_METADATA))
        for _ in range(draw(st.integers(0, 3))):
            flow.step(
                draw(st.one_of(st.sampled_from(rel_ids), _IDS) if rel_ids else _IDS),
                draw(_TEXT),
                direction=draw(st.sampled_from(list(TransitionDirection))),
                sequence_number=draw(st.integers(-5, 50)),
            )
    return arch


# ── Tests ────────────────────────────────────────────


class TestRoundTrip:
    """Annotated D2 preserves the whole model."""

    @settings(max_examples=150, deadline=None, suppress_health_check=[HealthCheck.too_slow])
    @given(architectures())
    def test_parse_render_identity(self, arch: Architecture) -> None:
        assert parse_annotated(render_annotated(arch)) == arch

    def test_shop(self, shop: Architecture) -> None:
        assert parse_annotated(render_annotated(shop)) == shop

    def test_reference(self) -> None:
        arch = build_architecture()
        assert parse_annotated(render_annotated(arch)) == arch

    def test_nested_order_restored(self) -> None:
        arch = Architecture(unique_id="x")
        arch.define_node("leaf", NodeType.SERVICE, "Leaf")
        arch.define_node("box", NodeType.SYSTEM, "Box")
        arch.composed_of("box-parts", "", "box", ["leaf"])
        text = render_annotated(arch)
        assert text.index("box: Box {") < text.index("leaf: Leaf {")
        assert parse_annotated(text).node_ids == ["leaf", "box"]

    def test_awkward_text(self) -> None:
        arch = Architecture(unique_id="x", name="a=b\\c")
        arch.define_node(
            "n", NodeType.WEB_CLIENT, "line one\nline two {x}", "tab\tand\r\nreturn = \\n",
            with_owner("ops # team"),
        )
        assert parse_annotated(render_annotated(arch)) == arch

    def test_non_plain_ids(self) -> None:
        arch = Architecture(unique_id="x")
        arch.define_node("my api", NodeType.SERVICE, "API")
        arch.define_node("v1.db", NodeType.DATABASE, "DB")
        arch.define_node("user", NodeType.ACTOR, "User")
        arch.connect("r1", "", "my api", "v1.db")
        arch.interacts("r2", "", "user", ["v1.db", "my api"])
        assert parse_annotated(render_annotated(arch)) == arch

    def test_colon_in_endpoint(self) -> None:
        arch = Architecture(unique_id="x")
        arch.define_node("svc:api", NodeType.SERVICE, "API")
        arch.define_node("db", NodeType.DATABASE, "DB")
        arch.connect("r1", "", "svc:api", "db")
        text = render_annotated(arch)
        assert '"svc:api" -> db {' in text.splitlines()
        assert parse_annotated(text) == arch

    def test_hash_in_node_id(self) -> None:
        arch = Architecture(unique_id="top")
        arch.define_node("c#1", NodeType.QUEUE, "Counter")
        parsed = parse_annotated(render_annotated(arch))
        assert parsed.unique_id == "top"
        assert parsed == arch

    def test_spaces_in_marker_ids(self) -> None:
        arch = Architecture(unique_id="x")
        arch.define_node("a", NodeType.SYSTEM, "A")
        arch.define_node("b", NodeType.SERVICE, "B")
        arch.composed_of("a holds b", "", "a", ["b"])
        arch.add_control("sec ctl", "Security")
        arch.define_flow("order flow", "Orders").step("a holds b", "nest")
        parsed = parse_annotated(render_annotated(arch))
        assert [r.unique_id for r in parsed.relationships] == ["a holds b"]
        assert list(parsed.controls) == ["sec ctl"]
        assert parsed == arch

    def test_interacts_without_targets(self) -> None:
        arch = Architecture(unique_id="x")
        arch.define_node("u", NodeType.ACTOR, "User")
        arch.interacts("r", "", "u", [])
        parsed = parse_annotated(render_annotated(arch))
        assert parsed.relationship("r").interacts.nodes == []
        assert parsed == arch
