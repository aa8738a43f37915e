"""Shape of a node declaration in program source.

A declaration is a call such as::

    arch.define_node("api", NodeType.SERVICE, "API", "Public API", with_owner("platform"))

``DeclarationSchema`` names where each property lives so the patch engine
never depends on bare positional indices.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from calmsync.config import CalmSyncSettings, get_settings


class NodeProperty(StrEnum):
    """Node properties the patch engine can rewrite in place."""
    NAME = "name"
    DESCRIPTION = "description"
    OWNER = "owner"


@dataclass(frozen=True, slots=True)
class ArgumentSlot:
    """Where an argument may appear: by position or by keyword."""
    position: int
    keyword: str


@dataclass(frozen=True, slots=True)
class DeclarationSchema:
    """Named layout of the declaration call.

    Attributes
    ----------
    method:
        Attribute name of the declaring call (``<receiver>.<method>(...)``).
    id_slot, type_slot, name_slot, description_slot:
        Where each property sits in the argument list.
    owner_option:
        Name of the option sub-call whose first argument is the owner.
    type_namespace:
        Enum used to spell node types in synthesized declarations.
    entry_point_markers:
        Case-insensitive substrings identifying construction functions;
        underscores are ignored when matching.
    default_receiver:
        Receiver used when nothing in the entry function names one.
    """
    method: str = "define_node"
    id_slot: ArgumentSlot = ArgumentSlot(0, "unique_id")
    type_slot: ArgumentSlot = ArgumentSlot(1, "node_type")
    name_slot: ArgumentSlot = ArgumentSlot(2, "name")
    description_slot: ArgumentSlot = ArgumentSlot(3, "description")
    owner_option: str = "with_owner"
    type_namespace: str = "NodeType"
    entry_point_markers: tuple[str, ...] = ("build", "define_nodes", "definenodes")
    default_receiver: str = "arch"

    @classmethod
    def from_settings(cls, settings: CalmSyncSettings | None = None) -> DeclarationSchema:
        settings = settings or get_settings()
        return cls(
            method=settings.declaration_method,
            owner_option=settings.owner_option,
            type_namespace=settings.type_namespace,
            entry_point_markers=tuple(settings.entry_point_markers),
            default_receiver=settings.default_receiver,
        )

    def slot_for(self, prop: NodeProperty) -> ArgumentSlot:
        """Argument slot of a positional property (owner has none)."""
        if prop is NodeProperty.NAME:
            return self.name_slot
        if prop is NodeProperty.DESCRIPTION:
            return self.description_slot
        raise KeyError(prop)

    def is_entry_point(self, function_name: str) -> bool:
        normalized = function_name.lower().replace("_", "")
        return any(marker.lower().replace("_", "") in normalized for marker in self.entry_point_markers)


DEFAULT_SCHEMA = DeclarationSchema()
