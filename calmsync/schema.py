"""Pydantic v2 model of a CALM architecture.

This is the canonical in-memory representation every renderer, the
annotated-text parser and the validation engine work against.  Field
aliases follow the CALM 1.1 JSON vocabulary so the structural renderer is
a plain ``model_dump_json(by_alias=True)``.

The aggregate also carries the builder methods of the Python DSL
(``arch.define_node(...)``, ``arch.connect(...)``); the source-patch engine
edits programs written against exactly these calls.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, model_validator

from calmsync.exceptions import DuplicateIdError

CALM_SCHEMA_URL = "https://calm.finos.org/release/1.1/meta/calm.json"

# ── Enumerations ─────────────────────────────────────


def _fold(name: str) -> str:
    return re.sub(r"[\s_-]", "", name).lower()


class NodeType(StrEnum):
    """CALM node types."""
    ACTOR = "actor"
    SERVICE = "service"
    DATABASE = "database"
    SYSTEM = "system"
    QUEUE = "queue"
    WEB_CLIENT = "webclient"

    @classmethod
    def parse(cls, value: str) -> NodeType:
        """Case- and separator-insensitive lookup by value or member name.

        ``"web-client"``, ``"WebClient"`` and ``"WEB_CLIENT"`` all give
        ``WEB_CLIENT``; anything else raises ``ValueError``.
        """
        key = _fold(value)
        for member in cls:
            if key in (_fold(member.value), _fold(member.name)):
                return member
        raise ValueError(f"unknown node type {value!r}")


class TransitionDirection(StrEnum):
    """Which way a flow transition traverses its relationship."""
    SOURCE_TO_DESTINATION = "source-to-destination"
    DESTINATION_TO_SOURCE = "destination-to-source"


class _CalmModel(BaseModel):
    model_config = {"populate_by_name": True}


# ── Controls ─────────────────────────────────────────


class Requirement(_CalmModel):
    """A policy document plus its inline or referenced configuration."""
    requirement_url: str = Field(alias="requirement-url")
    config: Any = Field(default=None, description="Inline configuration value")
    config_url: str | None = Field(default=None, alias="config-url")


class Control(_CalmModel):
    """A governance control: a description and its requirements."""
    description: str = ""
    requirements: list[Requirement] = Field(default_factory=list)


# ── Nodes ────────────────────────────────────────────


class Interface(_CalmModel):
    """A network or data interface exposed by a node."""
    unique_id: str = Field(alias="unique-id")
    protocol: str | None = None
    name: str | None = None
    port: int | None = None
    host: str | None = None
    path: str | None = None
    description: str | None = None
    database: str | None = None


class Node(_CalmModel):
    """A system component."""
    unique_id: str = Field(alias="unique-id")
    node_type: NodeType = Field(alias="node-type")
    name: str
    description: str = ""
    owner: str | None = None
    cost_center: str | None = Field(default=None, alias="costCenter")
    metadata: dict[str, Any] = Field(default_factory=dict)
    controls: dict[str, Control] = Field(default_factory=dict)
    interfaces: list[Interface] = Field(default_factory=list)

    def add_meta(self, key: str, value: Any) -> Node:
        self.metadata[key] = value
        return self

    def add_control(self, control_id: str, description: str, *requirements: Requirement) -> Node:
        self.controls[control_id] = Control(description=description, requirements=list(requirements))
        return self

    def add_interface(self, unique_id: str, protocol: str | None = None, **fields: Any) -> Interface:
        """Append an interface and return it (``port=``, ``host=`` etc. pass through)."""
        interface = Interface(unique_id=unique_id, protocol=protocol, **fields)
        self.interfaces.append(interface)
        return interface

    def interface(self, unique_id: str) -> Interface | None:
        return next((i for i in self.interfaces if i.unique_id == unique_id), None)


NodeOption = Callable[[Node], None]


# ── Relationships ────────────────────────────────────


class NodeInterface(_CalmModel):
    """One end of a connects relationship."""
    node: str
    interfaces: list[str] | None = None


class Connects(_CalmModel):
    source: NodeInterface
    destination: NodeInterface


class Interacts(_CalmModel):
    actor: str
    nodes: list[str] = Field(default_factory=list)


class ComposedOf(_CalmModel):
    container: str
    nodes: list[str] = Field(default_factory=list)


class RelationshipType(_CalmModel):
    """Exactly one of the three relationship variants."""
    connects: Connects | None = None
    interacts: Interacts | None = None
    composed_of: ComposedOf | None = Field(default=None, alias="composed-of")

    @model_validator(mode="after")
    def _exactly_one_variant(self) -> RelationshipType:
        populated = sum(v is not None for v in (self.connects, self.interacts, self.composed_of))
        if populated != 1:
            raise ValueError(f"relationship-type must populate exactly one variant, got {populated}")
        return self

    @property
    def kind(self) -> str:
        if self.connects is not None:
            return "connects"
        if self.interacts is not None:
            return "interacts"
        return "composed-of"


class Relationship(_CalmModel):
    """A typed edge between nodes."""
    unique_id: str = Field(alias="unique-id")
    description: str = ""
    relationship_type: RelationshipType = Field(alias="relationship-type")
    protocol: str | None = None
    data_classification: str | None = Field(default=None, alias="dataClassification")
    encrypted: bool | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def connects(self) -> Connects | None:
        return self.relationship_type.connects

    @property
    def interacts(self) -> Interacts | None:
        return self.relationship_type.interacts

    @property
    def composed_of(self) -> ComposedOf | None:
        return self.relationship_type.composed_of

    def referenced_node_ids(self) -> list[str]:
        """Every node id this relationship points at, in declaration order."""
        rt = self.relationship_type
        if rt.connects is not None:
            return [rt.connects.source.node, rt.connects.destination.node]
        if rt.interacts is not None:
            return [rt.interacts.actor, *rt.interacts.nodes]
        assert rt.composed_of is not None
        return [rt.composed_of.container, *rt.composed_of.nodes]


# ── Flows ────────────────────────────────────────────


class Transition(_CalmModel):
    relationship_unique_id: str = Field(alias="relationship-unique-id")
    sequence_number: int = Field(alias="sequence-number")
    description: str = ""
    direction: TransitionDirection = TransitionDirection.SOURCE_TO_DESTINATION


class Flow(_CalmModel):
    """An ordered walk over relationships describing one scenario."""
    unique_id: str = Field(alias="unique-id")
    name: str = ""
    description: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    transitions: list[Transition] = Field(default_factory=list)

    def step(
        self,
        relationship_id: str,
        description: str = "",
        *,
        direction: TransitionDirection = TransitionDirection.SOURCE_TO_DESTINATION,
        sequence_number: int | None = None,
    ) -> Flow:
        """Append a transition; sequence numbers continue from the highest so far."""
        if sequence_number is None:
            sequence_number = max((t.sequence_number for t in self.transitions), default=0) + 1
        self.transitions.append(
            Transition(
                relationship_unique_id=relationship_id,
                sequence_number=sequence_number,
                description=description,
                direction=direction,
            )
        )
        return self

    def steps(self, *steps: tuple[str, str]) -> Flow:
        """Append several ``(relationship_id, description)`` steps in order."""
        for relationship_id, description in steps:
            self.step(relationship_id, description)
        return self


# ── Top-level document ───────────────────────────────


def _check_unique(kind: str, ids: Iterable[str]) -> None:
    seen: set[str] = set()
    for unique_id in ids:
        if unique_id in seen:
            raise ValueError(f"duplicate {kind} id {unique_id!r}")
        seen.add(unique_id)


class Architecture(_CalmModel):
    """Root aggregate: nodes, relationships, flows and controls."""
    calm_schema: str = Field(default=CALM_SCHEMA_URL, alias="$schema")
    unique_id: str = Field(default="", alias="unique-id")
    name: str = ""
    description: str = ""
    adrs: list[str] = Field(default_factory=list, description="External decision records")
    metadata: dict[str, Any] = Field(default_factory=dict)
    controls: dict[str, Control] = Field(default_factory=dict)
    nodes: list[Node] = Field(default_factory=list)
    relationships: list[Relationship] = Field(default_factory=list)
    flows: list[Flow] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_ids(self) -> Architecture:
        _check_unique("node", (n.unique_id for n in self.nodes))
        _check_unique("relationship", (r.unique_id for r in self.relationships))
        _check_unique("flow", (f.unique_id for f in self.flows))
        return self

    # -- lookup --------------------------------------------------------

    @property
    def node_ids(self) -> list[str]:
        return [n.unique_id for n in self.nodes]

    def node(self, unique_id: str) -> Node | None:
        return next((n for n in self.nodes if n.unique_id == unique_id), None)

    def relationship(self, unique_id: str) -> Relationship | None:
        return next((r for r in self.relationships if r.unique_id == unique_id), None)

    def flow(self, unique_id: str) -> Flow | None:
        return next((f for f in self.flows if f.unique_id == unique_id), None)

    # -- builders ------------------------------------------------------

    def add_meta(self, key: str, value: Any) -> Architecture:
        self.metadata[key] = value
        return self

    def add_control(self, control_id: str, description: str, *requirements: Requirement) -> Architecture:
        self.controls[control_id] = Control(description=description, requirements=list(requirements))
        return self

    def add_node(self, node: Node) -> Node:
        if self.node(node.unique_id) is not None:
            raise DuplicateIdError("node", node.unique_id)
        self.nodes.append(node)
        return node

    def define_node(
        self,
        unique_id: str,
        node_type: NodeType,
        name: str,
        description: str = "",
        *options: NodeOption,
    ) -> Node:
        """Create, configure and register a node.

        Options are the ``with_*`` callables from ``calmsync.builder``;
        they run in order against the new node before it is registered.
        """
        node = Node(unique_id=unique_id, node_type=node_type, name=name, description=description)
        for option in options:
            option(node)
        return self.add_node(node)

    def add_relationship(self, relationship: Relationship) -> Relationship:
        if self.relationship(relationship.unique_id) is not None:
            raise DuplicateIdError("relationship", relationship.unique_id)
        self.relationships.append(relationship)
        return relationship

    def connect(
        self,
        unique_id: str,
        description: str,
        source: str,
        destination: str,
        *,
        source_interfaces: list[str] | None = None,
        destination_interfaces: list[str] | None = None,
        **fields: Any,
    ) -> Relationship:
        """Register a connects relationship between two node ids.

        Extra keyword arguments (``protocol``, ``data_classification``,
        ``encrypted``, ``metadata``) are set on the relationship.
        """
        connects = Connects(
            source=NodeInterface(node=source, interfaces=source_interfaces),
            destination=NodeInterface(node=destination, interfaces=destination_interfaces),
        )
        return self.add_relationship(
            Relationship(
                unique_id=unique_id,
                description=description,
                relationship_type=RelationshipType(connects=connects),
                **fields,
            )
        )

    def interacts(
        self, unique_id: str, description: str, actor: str, nodes: list[str], **fields: Any
    ) -> Relationship:
        return self.add_relationship(
            Relationship(
                unique_id=unique_id,
                description=description,
                relationship_type=RelationshipType(interacts=Interacts(actor=actor, nodes=list(nodes))),
                **fields,
            )
        )

    def composed_of(
        self, unique_id: str, description: str, container: str, nodes: list[str], **fields: Any
    ) -> Relationship:
        return self.add_relationship(
            Relationship(
                unique_id=unique_id,
                description=description,
                relationship_type=RelationshipType(
                    composed_of=ComposedOf(container=container, nodes=list(nodes))
                ),
                **fields,
            )
        )

    def add_flow(self, flow: Flow) -> Flow:
        if self.flow(flow.unique_id) is not None:
            raise DuplicateIdError("flow", flow.unique_id)
        self.flows.append(flow)
        return flow

    def define_flow(
        self,
        unique_id: str,
        name: str,
        description: str = "",
        *,
        metadata: dict[str, Any] | None = None,
    ) -> Flow:
        """Register an empty flow; chain ``.step(...)`` to add transitions."""
        return self.add_flow(
            Flow(unique_id=unique_id, name=name, description=description, metadata=dict(metadata or {}))
        )
