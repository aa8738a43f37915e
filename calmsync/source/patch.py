"""Source-patch engine: apply model-level edits to program source.

Edits:
- ``SyncEdit``: reconcile every node declaration with a model
- ``AddNodeEdit``: declare a new node in the construction entry point
- ``UpdateNodeEdit``: rewrite one property (name, description, owner)
- ``DeleteNodeEdit``: remove a node's declaration statement

All edits of one call are computed against a single parse and applied
together; any failure raises a ``SourceEditError`` and yields no text.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from calmsync.exceptions import DeclarationExistsError, UnknownNodeTypeError, UnsupportedPropertyError
from calmsync.schema import Architecture, NodeType
from calmsync.source.declaration import DeclarationSchema, NodeProperty
from calmsync.source.document import SourceDocument, string_literal

logger = logging.getLogger(__name__)


# ── Edits ────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class SyncEdit:
    architecture: Architecture


@dataclass(frozen=True, slots=True)
class AddNodeEdit:
    node_id: str
    node_type: NodeType | str
    name: str
    description: str = ""


@dataclass(frozen=True, slots=True)
class UpdateNodeEdit:
    node_id: str
    prop: NodeProperty | str
    value: str


@dataclass(frozen=True, slots=True)
class DeleteNodeEdit:
    node_id: str


SourceEdit = SyncEdit | AddNodeEdit | UpdateNodeEdit | DeleteNodeEdit


def _coerce_property(prop: NodeProperty | str) -> NodeProperty:
    try:
        return NodeProperty(prop)
    except ValueError:
        raise UnsupportedPropertyError(str(prop)) from None


def _coerce_type(node_type: NodeType | str) -> NodeType:
    # An unset type declares a service, matching the model default for bare blocks.
    if not node_type:
        return NodeType.SERVICE
    try:
        return NodeType.parse(node_type)
    except ValueError:
        raise UnknownNodeTypeError(str(node_type)) from None


# ── Engine ───────────────────────────────────────────


class SourcePatcher:
    """Applies ``SourceEdit`` values to source text."""

    __slots__ = ("schema",)

    def __init__(self, schema: DeclarationSchema | None = None) -> None:
        self.schema = schema or DeclarationSchema.from_settings()

    def apply(self, source: str, edit: SourceEdit) -> str:
        """Return ``source`` with ``edit`` applied.

        Raises:
            SourceEditError: The edit cannot be applied; nothing is returned.
        """
        doc = SourceDocument(source, self.schema)
        match edit:
            case SyncEdit(architecture=arch):
                self._sync(doc, arch)
            case AddNodeEdit(node_id=node_id, node_type=node_type, name=name, description=description):
                if node_id in doc.declared_ids():
                    raise DeclarationExistsError(node_id)
                self._add(doc, node_id, _coerce_type(node_type), name, description)
            case UpdateNodeEdit(node_id=node_id, prop=prop, value=value):
                prop = _coerce_property(prop)
                doc.rewrite_argument(doc.locate_declaration(node_id), prop, value)
            case DeleteNodeEdit(node_id=node_id):
                doc.remove_statement(doc.locate_declaration(node_id))
            case _:
                raise TypeError(f"unsupported source edit {type(edit).__name__}")
        patched = doc.apply()
        logger.info("Applied %s: %d text edit(s)", type(edit).__name__, doc.edit_count)
        return patched

    def _add(self, doc: SourceDocument, node_id: str, node_type: NodeType, name: str, description: str) -> None:
        entry = doc.entry_point()
        args = [
            string_literal(node_id),
            f"{self.schema.type_namespace}.{node_type.name}",
            string_literal(name),
            string_literal(description),
        ]
        doc.insert_statement(entry, f"{entry.receiver}.{self.schema.method}({', '.join(args)})")
        logger.debug("Declaring %s in %s()", node_id, entry.function.name)

    def _sync(self, doc: SourceDocument, arch: Architecture) -> None:
        """Update declared nodes, add new ones, delete the rest."""
        to_delete = dict.fromkeys(doc.declared_ids())
        for node in arch.nodes:
            if node.unique_id not in to_delete:
                self._add(doc, node.unique_id, node.node_type, node.name, node.description)
                continue
            del to_delete[node.unique_id]
            decl = doc.locate_declaration(node.unique_id)
            for prop, value in ((NodeProperty.NAME, node.name), (NodeProperty.DESCRIPTION, node.description)):
                if value and doc.literal_argument(decl, prop) != value:
                    doc.rewrite_argument(decl, prop, value)
        for node_id in to_delete:
            doc.remove_statement(doc.locate_declaration(node_id))
        logger.info(
            "Synced %d node(s) into source, removing %d declaration(s)", len(arch.nodes), len(to_delete)
        )


def apply_source_edit(source: str, edit: SourceEdit, *, schema: DeclarationSchema | None = None) -> str:
    """Apply one edit to program source; see ``SourcePatcher.apply``."""
    return SourcePatcher(schema).apply(source, edit)
