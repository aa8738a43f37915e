"""calmsync: keep CALM architecture representations in sync.

One model, many views: structural JSON, a D2 diagram, an annotated D2
diagram that parses back to the model, and the Python program that
builds it, which can be patched in place when another view changes.
"""

from __future__ import annotations

from calmsync.parser import parse_annotated
from calmsync.render import OutputFormat, load_structural, render
from calmsync.schema import Architecture, NodeType
from calmsync.source import apply_source_edit
from calmsync.validation import default_rules, validate

__version__ = "0.1.0"

__all__ = [
    "Architecture",
    "NodeType",
    "OutputFormat",
    "apply_source_edit",
    "default_rules",
    "load_structural",
    "parse_annotated",
    "render",
    "validate",
]
