"""calmsync exception hierarchy.

All library exceptions inherit from ``CalmSyncError`` so callers can
guard a whole build/render/patch pass with a single ``except`` clause.
Validation findings are *not* exceptions; see ``calmsync.validation``.
"""

from __future__ import annotations


class CalmSyncError(Exception):
    """Base exception for all calmsync failures."""

    __slots__ = ()


# ── Model / serialization ────────────────────────────


class StructuralDecodeError(CalmSyncError):
    """Raised when structural or annotated text cannot become a model."""

    __slots__ = ("detail",)

    def __init__(self, detail: str) -> None:
        super().__init__(f"Structural decode failed: {detail}")
        self.detail = detail


class DuplicateIdError(CalmSyncError):
    """Raised when a builder registers an id that already exists."""

    __slots__ = ("kind", "unique_id")

    def __init__(self, kind: str, unique_id: str) -> None:
        super().__init__(f"Duplicate {kind} id {unique_id!r}")
        self.kind = kind
        self.unique_id = unique_id


class UnknownFormatError(CalmSyncError):
    """Raised when a renderer is requested for an unsupported format."""

    __slots__ = ("fmt",)

    def __init__(self, fmt: str) -> None:
        super().__init__(f"Unknown output format {fmt!r}")
        self.fmt = fmt


# ── Source patching ──────────────────────────────────


class SourceEditError(CalmSyncError):
    """Base class for failures of the source-patch engine.

    When one of these is raised no patched text is produced; the
    caller keeps its original source.
    """

    __slots__ = ()


class SourceParseError(SourceEditError):
    """Raised when the program source is not syntactically valid."""

    __slots__ = ("line", "detail")

    def __init__(self, detail: str, line: int | None = None) -> None:
        where = f" (line {line})" if line is not None else ""
        super().__init__(f"Cannot parse source{where}: {detail}")
        self.detail = detail
        self.line = line


class DeclarationNotFoundError(SourceEditError):
    """Raised when no declaration exists for the requested node id."""

    __slots__ = ("node_id",)

    def __init__(self, node_id: str) -> None:
        super().__init__(f"Node declaration {node_id!r} not found in source")
        self.node_id = node_id


class AmbiguousDeclarationError(SourceEditError):
    """Raised when a node id is declared more than once."""

    __slots__ = ("node_id", "lines")

    def __init__(self, node_id: str, lines: list[int]) -> None:
        super().__init__(
            f"Node {node_id!r} is declared {len(lines)} times (lines {lines}); "
            "refusing to guess which declaration to edit"
        )
        self.node_id = node_id
        self.lines = lines


class EntryPointNotFoundError(SourceEditError):
    """Raised when no model-construction function exists to add into."""

    __slots__ = ("markers",)

    def __init__(self, markers: tuple[str, ...]) -> None:
        super().__init__(
            f"No construction entry point found (function names containing {list(markers)})"
        )
        self.markers = markers


class DeclarationExistsError(SourceEditError, DuplicateIdError):
    """Raised when adding a node whose id the source already declares."""

    __slots__ = ()

    def __init__(self, node_id: str) -> None:
        DuplicateIdError.__init__(self, "node declaration", node_id)

    @property
    def node_id(self) -> str:
        return self.unique_id


class UnknownNodeTypeError(SourceEditError):
    """Raised when an added node names a type outside ``NodeType``."""

    __slots__ = ("node_type",)

    def __init__(self, node_type: str) -> None:
        super().__init__(f"Unknown node type {node_type!r}")
        self.node_type = node_type


class UnsupportedPropertyError(SourceEditError):
    """Raised for an update of a property the engine cannot rewrite."""

    __slots__ = ("prop",)

    def __init__(self, prop: str) -> None:
        super().__init__(f"Property {prop!r} cannot be updated in source")
        self.prop = prop


class PropertyNotPresentError(SourceEditError):
    """Raised when the declaration has no argument carrying the property."""

    __slots__ = ("node_id", "prop")

    def __init__(self, node_id: str, prop: str) -> None:
        super().__init__(f"Declaration of {node_id!r} has no {prop!r} argument to rewrite")
        self.node_id = node_id
        self.prop = prop


# ── External tools ───────────────────────────────────


class RasterizerError(CalmSyncError):
    """Raised by a rasterizer port; carries the tool's diagnostic output."""

    __slots__ = ("diagnostics",)

    def __init__(self, message: str, diagnostics: str = "") -> None:
        super().__init__(f"{message}: {diagnostics}" if diagnostics else message)
        self.diagnostics = diagnostics
