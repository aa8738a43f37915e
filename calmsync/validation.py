"""Validation engine for architecture models.

Provides:
- ValidationRule protocol (runtime_checkable) with a ``check()`` method
- ValidationError: rule, node/entity id, message
- The standard rule set (``default_rules()``) plus the opt-in ``NoUnusedNodes``
- validate(): runs every rule, never stops early, never mutates the model

Errors are returned in rule order, then in discovery order within a rule.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from calmsync.schema import NodeType

if TYPE_CHECKING:
    from collections.abc import Iterable

    from calmsync.schema import Architecture

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ValidationError:
    """A single rule violation.

    Attributes:
        rule: Name of the rule that produced the error.
        node_id: Id of the offending node, relationship or flow ("" if none).
        message: Human-readable description.
    """

    rule: str
    node_id: str
    message: str

    def __str__(self) -> str:
        if self.node_id:
            return f"[{self.rule}] {self.node_id}: {self.message}"
        return f"[{self.rule}] {self.message}"


@runtime_checkable
class ValidationRule(Protocol):
    """Protocol for validation rules.

    Any object with a ``name`` and a ``check(arch) -> list[ValidationError]``
    method satisfies this protocol.
    """

    name: str

    def check(self, arch: Architecture) -> list[ValidationError]:
        ...


# ── Standard rules ───────────────────────────────────


class AllNodesHaveOwner:
    """Every node has a non-empty owner."""

    __slots__ = ("name",)

    def __init__(self) -> None:
        self.name = "AllNodesHaveOwner"

    def check(self, arch: Architecture) -> list[ValidationError]:
        return [
            ValidationError(self.name, node.unique_id, "missing owner")
            for node in arch.nodes
            if not node.owner
        ]


class _MetadataKeyRule(ABC):
    """Nodes selected by ``applies`` must carry ``key`` in their metadata."""

    __slots__ = ("name", "key", "message")

    def __init__(self, name: str, key: str, message: str) -> None:
        self.name = name
        self.key = key
        self.message = message

    @abstractmethod
    def applies(self, node_type: NodeType, metadata: dict) -> bool: ...

    def check(self, arch: Architecture) -> list[ValidationError]:
        return [
            ValidationError(self.name, node.unique_id, self.message)
            for node in arch.nodes
            if self.applies(node.node_type, node.metadata) and self.key not in node.metadata
        ]


class AllServicesHaveHealthEndpoint(_MetadataKeyRule):
    __slots__ = ()

    def __init__(self) -> None:
        super().__init__(
            "AllServicesHaveHealthEndpoint",
            "health-endpoint",
            "service missing health-endpoint in metadata",
        )

    def applies(self, node_type: NodeType, metadata: dict) -> bool:
        return node_type == NodeType.SERVICE


class AllDatabasesHaveBackupSchedule(_MetadataKeyRule):
    __slots__ = ()

    def __init__(self) -> None:
        super().__init__(
            "AllDatabasesHaveBackupSchedule",
            "backup-schedule",
            "database missing backup-schedule in metadata",
        )

    def applies(self, node_type: NodeType, metadata: dict) -> bool:
        return node_type == NodeType.DATABASE


class AllTier1NodesHaveRunbook(_MetadataKeyRule):
    __slots__ = ()

    def __init__(self) -> None:
        super().__init__("AllTier1NodesHaveRunbook", "runbook", "tier-1 node missing runbook in metadata")

    def applies(self, node_type: NodeType, metadata: dict) -> bool:
        return metadata.get("tier") == "tier-1"


class NoDanglingRelationships:
    """Every node id a relationship references exists in the model.

    One error per missing reference, attributed to the relationship.
    """

    __slots__ = ("name",)

    def __init__(self) -> None:
        self.name = "NoDanglingRelationships"

    def check(self, arch: Architecture) -> list[ValidationError]:
        known = set(arch.node_ids)
        errors: list[ValidationError] = []

        def require(rel_id: str, role: str, node_id: str) -> None:
            if node_id not in known:
                errors.append(ValidationError(self.name, rel_id, f"{role} {node_id!r} does not exist"))

        for rel in arch.relationships:
            rt = rel.relationship_type
            if rt.connects is not None:
                require(rel.unique_id, "source node", rt.connects.source.node)
                require(rel.unique_id, "destination node", rt.connects.destination.node)
            elif rt.interacts is not None:
                require(rel.unique_id, "actor", rt.interacts.actor)
                for target in rt.interacts.nodes:
                    require(rel.unique_id, "target node", target)
            elif rt.composed_of is not None:
                require(rel.unique_id, "container node", rt.composed_of.container)
                for member in rt.composed_of.nodes:
                    require(rel.unique_id, "contained node", member)
        return errors


class AllFlowsHaveValidTransitions:
    """Every flow transition references an existing relationship."""

    __slots__ = ("name",)

    def __init__(self) -> None:
        self.name = "AllFlowsHaveValidTransitions"

    def check(self, arch: Architecture) -> list[ValidationError]:
        relationship_ids = {rel.unique_id for rel in arch.relationships}
        return [
            ValidationError(
                self.name,
                flow.unique_id,
                f"transition references non-existent relationship {t.relationship_unique_id!r}",
            )
            for flow in arch.flows
            for t in flow.transitions
            if t.relationship_unique_id not in relationship_ids
        ]


class NoUnusedNodes:
    """Every node takes part in at least one relationship.  Opt-in."""

    __slots__ = ("name",)

    def __init__(self) -> None:
        self.name = "NoUnusedNodes"

    def check(self, arch: Architecture) -> list[ValidationError]:
        used = {node_id for rel in arch.relationships for node_id in rel.referenced_node_ids()}
        return [
            ValidationError(self.name, node.unique_id, "node is not referenced by any relationship")
            for node in arch.nodes
            if node.unique_id not in used
        ]


def default_rules() -> list[ValidationRule]:
    """The standard rule set (``NoUnusedNodes`` is not included)."""
    return [
        AllNodesHaveOwner(),
        AllServicesHaveHealthEndpoint(),
        NoDanglingRelationships(),
        AllFlowsHaveValidTransitions(),
        AllDatabasesHaveBackupSchedule(),
        AllTier1NodesHaveRunbook(),
    ]


# ── Entry points ─────────────────────────────────────


def validate(arch: Architecture, rules: Iterable[ValidationRule] | None = None) -> list[ValidationError]:
    """Run every rule and collect all of their errors.

    Args:
        arch: Model to inspect (not modified).
        rules: Rules to run; ``default_rules()`` when omitted.

    Returns:
        All errors, in rule order.
    """
    errors: list[ValidationError] = []
    for rule in default_rules() if rules is None else rules:
        found = rule.check(arch)
        if found:
            logger.debug("Rule %s reported %d error(s)", rule.name, len(found))
        errors.extend(found)
    return errors


def format_report(errors: list[ValidationError]) -> str:
    """Plain-text summary of a validation run."""
    if not errors:
        return "All validation rules passed"
    lines = [f"Validation failed with {len(errors)} error(s):"]
    lines.extend(f"  - {err}" for err in errors)
    return "\n".join(lines)
