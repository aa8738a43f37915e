"""Parser for annotated D2 text → Architecture.

Inverse of ``calmsync.render.annotated``.  A single forward pass keeps one
explicit state (``ParseState``) and at most one pending draft:

- IN_NODE: a ``<key>: <label> {`` block is open; annotations fill the node
- IN_RELATIONSHIP: a ``<path> -> <path> {`` block is open
- IN_FLOW: the last ``# @calm:flow`` marker; stays current until the next
  marker or block start

Malformed annotation values are skipped with a warning.  A result that
violates a model invariant (duplicate node, relationship or flow ids) raises
``StructuralDecodeError``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any

from pydantic import TypeAdapter, ValidationError

from calmsync import grammar
from calmsync.exceptions import StructuralDecodeError
from calmsync.schema import (
    CALM_SCHEMA_URL,
    Architecture,
    Connects,
    Control,
    Flow,
    Interacts,
    Interface,
    Node,
    NodeInterface,
    NodeType,
    Relationship,
    RelationshipType,
    Transition,
)

logger = logging.getLogger(__name__)

_JSON_OBJECT = TypeAdapter(dict[str, Any])
_STRING_LIST = TypeAdapter(list[str])
_INTERFACES = TypeAdapter(list[Interface])
_CONTROLS = TypeAdapter(dict[str, Control])
_FLOW = TypeAdapter(Flow)
_TRANSITION = TypeAdapter(Transition)
_RELATIONSHIP = TypeAdapter(Relationship)


class ParseState(Enum):
    """Which kind of block the parser is currently inside."""
    NONE = auto()
    IN_NODE = auto()
    IN_RELATIONSHIP = auto()
    IN_FLOW = auto()


# ── Drafts ───────────────────────────────────────────


@dataclass
class NodeDraft:
    """A node block being read; ``fields`` uses Node field names."""
    unique_id: str
    label: str
    fields: dict[str, Any] = field(default_factory=dict)


@dataclass
class RelationshipDraft:
    """A relationship block being read.

    ``source``/``destination`` come from the edge line and can be
    overridden by annotations.
    """
    source: str
    destination: str
    kind: str = "connects"
    unique_id: str = ""
    actor: str | None = None
    source_interfaces: list[str] | None = None
    destination_interfaces: list[str] | None = None
    fields: dict[str, Any] = field(default_factory=dict)


def _decode(adapter: TypeAdapter, key: str, raw: str) -> Any:
    """Decode a JSON annotation value; None (after a warning) if malformed."""
    try:
        return adapter.validate_json(raw)
    except ValidationError as exc:
        logger.warning("Skipping malformed %r annotation: %s", key, exc.errors()[0]["msg"])
        return None


def _decode_bool(key: str, raw: str) -> bool | None:
    if raw in ("true", "false"):
        return raw == "true"
    logger.warning("Skipping non-boolean %r annotation: %r", key, raw)
    return None


# ── Parser ───────────────────────────────────────────


class AnnotatedParser:
    """Single-use parser; call ``parse()`` once per document."""

    def __init__(self) -> None:
        self._state = ParseState.NONE
        self._pending: NodeDraft | RelationshipDraft | Flow | None = None
        self._arch: dict[str, Any] = {"calm_schema": CALM_SCHEMA_URL}
        self._node_order: list[str] | None = None
        self._nodes: list[Node] = []
        self._relationships: list[Relationship] = []
        self._flows: list[Flow] = []
        self._controls: dict[str, Control] = {}

    def parse(self, text: str) -> Architecture:
        for line_no, raw_line in enumerate(text.split("\n"), start=1):
            self._feed(raw_line.rstrip("\r"), line_no)
        self._close_block()
        return self._finish()

    # -- dispatch ------------------------------------------------------

    def _feed(self, line: str, line_no: int) -> None:
        if m := grammar.ANNOTATION_RE.match(line):
            key, value = m.group(1), m.group(2)
            match key:
                case grammar.FLOW:
                    self._flow(value)
                case grammar.FLOW_STEP:
                    self._flow_step(value, line_no)
                case grammar.RELATIONSHIP:
                    self._standalone_relationship(value)
                case _:
                    self._annotation(key, value)
        elif m := grammar.NODE_START_RE.match(line):
            self._close_block()
            self._state = ParseState.IN_NODE
            self._pending = NodeDraft(unique_id=grammar.unquote_key(m.group(1)), label=m.group(2))
        elif m := grammar.EDGE_RE.match(line):
            self._close_block()
            self._state = ParseState.IN_RELATIONSHIP
            self._pending = RelationshipDraft(
                source=grammar.path_tail(m.group(1)), destination=grammar.path_tail(m.group(2))
            )
        elif grammar.BLOCK_END_RE.match(line):
            if self._state in (ParseState.IN_NODE, ParseState.IN_RELATIONSHIP):
                self._close_block()

    def _annotation(self, key: str, value: str) -> None:
        pending = self._pending
        if self._state is ParseState.IN_NODE and isinstance(pending, NodeDraft):
            self._node_annotation(pending, key, value)
        elif self._state is ParseState.IN_RELATIONSHIP and isinstance(pending, RelationshipDraft):
            self._relationship_annotation(pending, key, value)
        elif self._state is ParseState.IN_FLOW and isinstance(pending, Flow):
            self._flow_annotation(pending, key, value)
        else:
            self._architecture_annotation(key, value)

    # -- architecture --------------------------------------------------

    def _architecture_annotation(self, key: str, value: str) -> None:
        match key:
            case "id":
                self._arch["unique_id"] = grammar.unescape(value)
            case "name" | "description":
                self._arch[key] = grammar.unescape(value)
            case "schema":
                self._arch["calm_schema"] = grammar.unescape(value)
            case "adrs":
                adrs = _decode(_STRING_LIST, key, value)
                if adrs is not None:
                    self._arch["adrs"] = adrs
            case "metadata":
                metadata = _decode(_JSON_OBJECT, key, value)
                if metadata is not None:
                    self._arch["metadata"] = metadata
            case "controls":
                controls = _decode(_CONTROLS, key, value)
                if controls is not None:
                    self._controls = controls
            case "node-order":
                self._node_order = _decode(_STRING_LIST, key, value)
            case _:
                logger.debug("Ignoring architecture annotation %r", key)

    # -- nodes ---------------------------------------------------------

    def _node_annotation(self, draft: NodeDraft, key: str, value: str) -> None:
        match key:
            case "id":
                draft.unique_id = grammar.unescape(value)
            case "type":
                try:
                    draft.fields["node_type"] = NodeType.parse(grammar.unescape(value))
                except ValueError:
                    logger.warning("Skipping unknown node type %r on %s", value, draft.unique_id)
            case "name" | "owner" | "description":
                draft.fields[key] = grammar.unescape(value)
            case "costCenter":
                draft.fields["cost_center"] = grammar.unescape(value)
            case "metadata":
                decoded = _decode(_JSON_OBJECT, key, value)
                if decoded is not None:
                    draft.fields["metadata"] = decoded
            case "interfaces":
                decoded = _decode(_INTERFACES, key, value)
                if decoded is not None:
                    draft.fields["interfaces"] = decoded
            case "controls":
                decoded = _decode(_CONTROLS, key, value)
                if decoded is not None:
                    draft.fields["controls"] = decoded
            case _:
                logger.debug("Ignoring node annotation %r on %s", key, draft.unique_id)

    def _flush_node(self, draft: NodeDraft) -> None:
        fields = dict(draft.fields)
        fields.setdefault("node_type", NodeType.SERVICE)
        fields.setdefault("name", draft.label)
        self._nodes.append(Node(unique_id=draft.unique_id, **fields))

    # -- relationships -------------------------------------------------

    def _relationship_annotation(self, draft: RelationshipDraft, key: str, value: str) -> None:
        match key:
            case "id":
                draft.unique_id = grammar.unescape(value)
            case "type":
                kind = grammar.unescape(value)
                if kind in ("connects", "interacts"):
                    draft.kind = kind
                else:
                    logger.warning("Skipping relationship type %r inside an edge block", kind)
            case "description" | "protocol":
                draft.fields[key] = grammar.unescape(value)
            case "classification":
                draft.fields["data_classification"] = grammar.unescape(value)
            case "encrypted":
                flag = _decode_bool(key, value)
                if flag is not None:
                    draft.fields["encrypted"] = flag
            case "metadata":
                decoded = _decode(_JSON_OBJECT, key, value)
                if decoded is not None:
                    draft.fields["metadata"] = decoded
            case "actor":
                draft.actor = grammar.unescape(value)
            case "source":
                draft.source = grammar.unescape(value)
            case "destination" | "target":
                draft.destination = grammar.unescape(value)
            case "srcInterfaces":
                draft.source_interfaces = _decode(_STRING_LIST, key, value)
            case "dstInterfaces":
                draft.destination_interfaces = _decode(_STRING_LIST, key, value)
            case _:
                logger.debug("Ignoring relationship annotation %r", key)

    def _flush_relationship(self, draft: RelationshipDraft) -> None:
        if not draft.unique_id:
            logger.debug("Dropping unannotated edge %s -> %s", draft.source, draft.destination)
            return
        if draft.kind == "interacts":
            actor = draft.actor if draft.actor is not None else draft.source
            previous = self._relationships[-1] if self._relationships else None
            # One block is emitted per target; consecutive blocks share the id.
            if previous is not None and previous.unique_id == draft.unique_id and previous.interacts is not None:
                previous.interacts.nodes.append(draft.destination)
                return
            variant = RelationshipType(interacts=Interacts(actor=actor, nodes=[draft.destination]))
        else:
            variant = RelationshipType(
                connects=Connects(
                    source=NodeInterface(node=draft.source, interfaces=draft.source_interfaces),
                    destination=NodeInterface(node=draft.destination, interfaces=draft.destination_interfaces),
                )
            )
        self._relationships.append(
            Relationship(unique_id=draft.unique_id, relationship_type=variant, **draft.fields)
        )

    def _standalone_relationship(self, raw: str) -> None:
        rel = _decode(_RELATIONSHIP, grammar.RELATIONSHIP, raw)
        if rel is not None:
            self._relationships.append(rel)

    # -- flows ---------------------------------------------------------

    def _flow(self, raw: str) -> None:
        self._close_block()
        flow = _decode(_FLOW, grammar.FLOW, raw)
        if flow is None:
            return
        self._flows.append(flow)
        self._state, self._pending = ParseState.IN_FLOW, flow

    def _flow_annotation(self, flow: Flow, key: str, value: str) -> None:
        match key:
            case "flow-description":
                flow.description = grammar.unescape(value)
            case "flow-metadata":
                decoded = _decode(_JSON_OBJECT, key, value)
                if decoded is not None:
                    flow.metadata = decoded
            case _:
                logger.debug("Ignoring flow annotation %r on %s", key, flow.unique_id)

    def _flow_step(self, raw: str, line_no: int) -> None:
        flow = self._pending
        if self._state is not ParseState.IN_FLOW or not isinstance(flow, Flow):
            logger.warning("Line %d: flow-step outside a flow declaration", line_no)
            return
        transition = _decode(_TRANSITION, grammar.FLOW_STEP, raw)
        if transition is not None:
            flow.transitions.append(transition)

    # -- lifecycle -----------------------------------------------------

    def _close_block(self) -> None:
        """Flush any open node or relationship and return to NONE."""
        pending = self._pending
        try:
            if isinstance(pending, NodeDraft):
                self._flush_node(pending)
            elif isinstance(pending, RelationshipDraft):
                self._flush_relationship(pending)
        except ValidationError as exc:
            raise StructuralDecodeError(str(exc)) from exc
        self._state, self._pending = ParseState.NONE, None

    def _finish(self) -> Architecture:
        nodes = self._nodes
        if self._node_order:
            rank = {node_id: i for i, node_id in enumerate(self._node_order)}
            nodes = sorted(nodes, key=lambda n: rank.get(n.unique_id, len(rank)))
        try:
            return Architecture(
                **self._arch,
                controls=self._controls,
                nodes=nodes,
                relationships=self._relationships,
                flows=self._flows,
            )
        except ValidationError as exc:
            raise StructuralDecodeError(str(exc)) from exc


def parse_annotated(text: str) -> Architecture:
    """Rebuild an Architecture from annotated D2 text."""
    return AnnotatedParser().parse(text)
