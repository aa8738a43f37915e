"""The ``# @calm:`` line grammar of annotated D2 text.

Annotated diagrams are ordinary D2 documents whose comment lines carry
enough model data to rebuild the architecture exactly.  Line kinds:

    # @calm:<key>=<value>                generic annotation
    # @calm:flow=<json>                  flow declaration (no transitions)
    # @calm:flow-step=<json>             one transition of the current flow
    # @calm:relationship=<json>          relationship with no edge to draw
    <key>: <label> {                     node block start
    <path> -> <path>[: <label>] {        relationship block start
    }                                    block end

Free-text values are escaped so a value always stays on one line;
structured values are compact JSON and never escaped.  Diagram keys are
bare when they are plain ids and double-quoted otherwise; a path is keys
joined by dots.
"""

from __future__ import annotations

import json
import re
from typing import Any

PREFIX = "# @calm:"

_QUOTED = r'"(?:[^"\\]|\\.)*"'
_SEGMENT = rf'(?:{_QUOTED}|[^\s:#{{}}."\\]+)'
_PATH = rf"{_SEGMENT}(?:\.{_SEGMENT})*"

ANNOTATION_RE = re.compile(r"^\s*#\s*@calm:([\w-]+)=(.*)$")
NODE_START_RE = re.compile(rf'^\s*({_QUOTED}|[^\s:#"]+):\s*(.*\S)\s*\{{\s*$')
EDGE_RE = re.compile(rf"^\s*({_PATH})\s*->\s*({_PATH})")
BLOCK_END_RE = re.compile(r"^\s*\}\s*$")
SEGMENT_RE = re.compile(_SEGMENT)

# Keys of lines that stand on their own regardless of the open block.
FLOW = "flow"
FLOW_STEP = "flow-step"
RELATIONSHIP = "relationship"

_ESCAPES = {"n": "\n", "r": "\r"}
_UNESCAPE_RE = re.compile(r"\\(.)")


def escape(value: str) -> str:
    """Escape a free-text value for a single annotation line."""
    return (
        value.replace("\\", "\\\\")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("=", "\\=")
    )


def unescape(value: str) -> str:
    """Exact inverse of ``escape``."""
    return _UNESCAPE_RE.sub(lambda m: _ESCAPES.get(m.group(1), m.group(1)), value)


def compact_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _clean(text: str) -> str:
    return text.replace("\r", " ").replace("\n", " ").replace("{", "").replace("}", "").strip()


def label(text: str, fallback: str) -> str:
    """Diagram label: one line, no braces."""
    return _clean(text) or _clean(fallback)


def unquote_key(key: str) -> str:
    """Node id written as one diagram key, quoted or bare."""
    if len(key) >= 2 and key[0] == key[-1] == '"':
        return unescape(key[1:-1])
    return key


def path_tail(path: str) -> str:
    """Id of the last key of a dotted diagram path."""
    segments = SEGMENT_RE.findall(path)
    return unquote_key(segments[-1]) if segments else path


# ── Line writers ─────────────────────────────────────


def text_line(key: str, value: str, indent: str = "") -> str:
    return f"{indent}{PREFIX}{key}={escape(value)}"


def json_line(key: str, value: Any, indent: str = "") -> str:
    return f"{indent}{PREFIX}{key}={compact_json(value)}"
