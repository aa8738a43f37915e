"""Source-patch engine for Python architecture definitions."""

from __future__ import annotations

from calmsync.source.declaration import DEFAULT_SCHEMA, DeclarationSchema, NodeProperty
from calmsync.source.document import Declaration, SourceDocument
from calmsync.source.patch import (
    AddNodeEdit,
    DeleteNodeEdit,
    SourceEdit,
    SourcePatcher,
    SyncEdit,
    UpdateNodeEdit,
    apply_source_edit,
)

__all__ = [
    "DEFAULT_SCHEMA",
    "AddNodeEdit",
    "Declaration",
    "DeclarationSchema",
    "DeleteNodeEdit",
    "NodeProperty",
    "SourceDocument",
    "SourceEdit",
    "SourcePatcher",
    "SyncEdit",
    "UpdateNodeEdit",
    "apply_source_edit",
]
