"""Renderers: Architecture → text in one of several formats."""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

from calmsync.exceptions import UnknownFormatError
from calmsync.render.annotated import render_annotated
from calmsync.render.diagram import render_d2
from calmsync.render.source import render_source
from calmsync.render.structural import load_structural, load_yaml, to_json, to_yaml

if TYPE_CHECKING:
    from collections.abc import Callable

    from calmsync.schema import Architecture


class OutputFormat(StrEnum):
    """Supported output formats."""
    STRUCTURAL = "structural"
    YAML = "yaml"
    DIAGRAM = "diagram"
    ANNOTATED_DIAGRAM = "annotated-diagram"
    SOURCE = "source"

    @classmethod
    def parse(cls, value: str | OutputFormat) -> OutputFormat:
        """Resolve a format name or one of its aliases (json, d2, rich-d2, python)."""
        key = str(value).strip().lower()
        key = _ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise UnknownFormatError(str(value)) from None


_ALIASES = {
    "json": "structural",
    "d2": "diagram",
    "rich-d2": "annotated-diagram",
    "annotated": "annotated-diagram",
    "python": "source",
}

_RENDERERS: dict[OutputFormat, Callable[[Architecture], str]] = {
    OutputFormat.STRUCTURAL: to_json,
    OutputFormat.YAML: to_yaml,
    OutputFormat.DIAGRAM: render_d2,
    OutputFormat.ANNOTATED_DIAGRAM: render_annotated,
    OutputFormat.SOURCE: render_source,
}


def render(arch: Architecture, fmt: str | OutputFormat) -> str:
    """Render ``arch`` in ``fmt``; unknown formats raise ``UnknownFormatError``."""
    return _RENDERERS[OutputFormat.parse(fmt)](arch)


__all__ = [
    "OutputFormat",
    "load_structural",
    "load_yaml",
    "render",
    "render_annotated",
    "render_d2",
    "render_source",
    "to_json",
    "to_yaml",
]
