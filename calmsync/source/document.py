"""Syntax-tree view of program source for surgical text edits.

``SourceDocument`` parses Python source with ``ast`` once, locates node
declarations by their literal id, and records edits as character-range
splices.  Nothing is written until ``apply()``; every byte outside the
spliced ranges is preserved exactly.

Narrow interface used by the patch engine:

- ``declared_ids()`` / ``locate_declaration(node_id)``
- ``literal_argument(decl, prop)`` / ``rewrite_argument(decl, prop, value)``
- ``insert_statement(text)``
- ``remove_statement(decl)``
- ``apply()``
"""

from __future__ import annotations

import ast
import json
import logging
import re
from dataclasses import dataclass

from calmsync.exceptions import (
    AmbiguousDeclarationError,
    DeclarationNotFoundError,
    EntryPointNotFoundError,
    PropertyNotPresentError,
    SourceEditError,
    SourceParseError,
)
from calmsync.source.declaration import DEFAULT_SCHEMA, DeclarationSchema, NodeProperty

logger = logging.getLogger(__name__)

_NEWLINE_RE = re.compile(r"\r\n|\r|\n")
_SIMPLE_STATEMENTS = (ast.Expr, ast.Assign, ast.AnnAssign)
_FUNCTIONS = (ast.FunctionDef, ast.AsyncFunctionDef)


def string_literal(value: str) -> str:
    """Double-quoted Python string literal for ``value``."""
    return json.dumps(value, ensure_ascii=False)


@dataclass(frozen=True, slots=True)
class Declaration:
    """One located declaration call."""
    node_id: str
    call: ast.Call
    statement: ast.stmt | None
    block: list[ast.stmt] | None
    function: str | None

    @property
    def line(self) -> int:
        return self.call.lineno


@dataclass(frozen=True, slots=True)
class EntryPoint:
    """The function new declarations are added to."""
    function: ast.FunctionDef | ast.AsyncFunctionDef
    receiver: str


@dataclass(frozen=True, slots=True)
class TextEdit:
    start: int
    end: int
    text: str
    order: int

    @property
    def is_insertion(self) -> bool:
        return self.start == self.end


class SourceDocument:
    """Parsed source plus pending edits."""

    def __init__(self, text: str, schema: DeclarationSchema = DEFAULT_SCHEMA) -> None:
        self.text = text
        self.schema = schema
        try:
            self._tree = ast.parse(text)
        except SyntaxError as exc:
            raise SourceParseError(exc.msg, exc.lineno) from exc
        self._line_starts = [0] + [m.end() for m in _NEWLINE_RE.finditer(text)]
        self._owners: dict[int, tuple[ast.stmt, list[ast.stmt], str | None]] = {}
        self._index_blocks(self._tree, None)
        self._declarations = self._scan_declarations()
        self._edits: list[TextEdit] = []
        self._removed: dict[int, int] = {}

    # ── Positions ────────────────────────────────────

    def offset(self, lineno: int, col_offset: int) -> int:
        """Character offset of an ast (line, UTF-8 byte column) position."""
        start = self._line_starts[lineno - 1]
        line = self.text[start:self._line_starts[lineno]] if lineno < len(self._line_starts) else self.text[start:]
        return start + len(line.encode("utf-8")[:col_offset].decode("utf-8"))

    def span(self, node: ast.expr | ast.stmt) -> tuple[int, int]:
        assert node.end_lineno is not None and node.end_col_offset is not None
        return self.offset(node.lineno, node.col_offset), self.offset(node.end_lineno, node.end_col_offset)

    def _line_start(self, lineno: int) -> int:
        """Offset where ``lineno`` begins (end of text past the last line)."""
        return self._line_starts[lineno - 1] if lineno <= len(self._line_starts) else len(self.text)

    def _line_end(self, lineno: int) -> int:
        """Offset just past the line break ending ``lineno``."""
        return self._line_starts[lineno] if lineno < len(self._line_starts) else len(self.text)

    # ── Indexing ─────────────────────────────────────

    def _index_blocks(self, node: ast.AST, function: str | None) -> None:
        """Map every call inside a simple statement to its statement and block."""
        blocks = [getattr(node, name, None) for name in ("body", "orelse", "finalbody")]
        for block in blocks:
            if not isinstance(block, list):
                continue
            for stmt in block:
                if not isinstance(stmt, ast.stmt):
                    continue
                if isinstance(stmt, _SIMPLE_STATEMENTS):
                    for sub in ast.walk(stmt):
                        if isinstance(sub, ast.Call):
                            self._owners.setdefault(id(sub), (stmt, block, function))
                self._index_blocks(stmt, stmt.name if isinstance(stmt, _FUNCTIONS) else function)
        for child in (*getattr(node, "handlers", ()), *getattr(node, "cases", ())):
            self._index_blocks(child, function)

    def _declared_id(self, call: ast.Call) -> str | None:
        func = call.func
        if not isinstance(func, ast.Attribute) or func.attr != self.schema.method:
            return None
        arg = self._argument(call, self.schema.id_slot.position, self.schema.id_slot.keyword)
        if isinstance(arg, ast.Constant) and isinstance(arg.value, str):
            return arg.value
        return None

    def _scan_declarations(self) -> list[Declaration]:
        found = []
        for sub in ast.walk(self._tree):
            if isinstance(sub, ast.Call) and (node_id := self._declared_id(sub)) is not None:
                stmt, block, function = self._owners.get(id(sub), (None, None, None))
                found.append(Declaration(node_id, sub, stmt, block, function))
        found.sort(key=lambda d: (d.call.lineno, d.call.col_offset))
        return found

    @staticmethod
    def _argument(call: ast.Call, position: int, keyword: str) -> ast.expr | None:
        positional = [a for a in call.args if not isinstance(a, ast.Starred)]
        if len(positional) == len(call.args) and position < len(positional):
            return positional[position]
        return next((kw.value for kw in call.keywords if kw.arg == keyword), None)

    # ── Lookup ───────────────────────────────────────

    def declared_ids(self) -> list[str]:
        """Every literal node id declared anywhere in the source, in order."""
        return list(dict.fromkeys(d.node_id for d in self._declarations))

    def locate_declaration(self, node_id: str) -> Declaration:
        matches = [d for d in self._declarations if d.node_id == node_id]
        if not matches:
            raise DeclarationNotFoundError(node_id)
        if len(matches) > 1:
            raise AmbiguousDeclarationError(node_id, [d.line for d in matches])
        return matches[0]

    def _owner_call(self, decl: Declaration) -> ast.Call | None:
        option = self.schema.owner_option
        candidates = [*decl.call.args, *(kw.value for kw in decl.call.keywords)]
        for arg in candidates:
            if not isinstance(arg, ast.Call):
                continue
            func = arg.func
            name = func.id if isinstance(func, ast.Name) else func.attr if isinstance(func, ast.Attribute) else None
            if name == option:
                return arg
        return None

    def _property_node(self, decl: Declaration, prop: NodeProperty) -> ast.expr | None:
        if prop is NodeProperty.OWNER:
            owner_call = self._owner_call(decl)
            if owner_call is None:
                return None
            return self._argument(owner_call, 0, "owner")
        slot = self.schema.slot_for(prop)
        return self._argument(decl.call, slot.position, slot.keyword)

    def literal_argument(self, decl: Declaration, prop: NodeProperty) -> str | None:
        """Current literal value of a property, or None if absent or computed."""
        node = self._property_node(decl, prop)
        if isinstance(node, ast.Constant) and isinstance(node.value, str):
            return node.value
        return None

    def entry_point(self) -> EntryPoint:
        """First construction function in source order, with its receiver."""
        functions = sorted(
            (n for n in ast.walk(self._tree) if isinstance(n, _FUNCTIONS)),
            key=lambda f: (f.lineno, f.col_offset),
        )
        for function in functions:
            if self.schema.is_entry_point(function.name):
                return EntryPoint(function, self._receiver(function))
        raise EntryPointNotFoundError(self.schema.entry_point_markers)

    def _receiver(self, function: ast.FunctionDef | ast.AsyncFunctionDef) -> str:
        inner = {id(n) for n in ast.walk(function)}
        for decl in self._declarations:
            func = decl.call.func
            if id(decl.call) in inner and isinstance(func, ast.Attribute) and isinstance(func.value, ast.Name):
                return func.value.id
        last = function.body[-1]
        if isinstance(last, ast.Return) and isinstance(last.value, ast.Name):
            return last.value.id
        params = [a.arg for a in (*function.args.posonlyargs, *function.args.args)]
        params = [p for p in params if p not in ("self", "cls")]
        return params[0] if params else self.schema.default_receiver

    # ── Edits ────────────────────────────────────────

    def _queue(self, start: int, end: int, text: str) -> None:
        self._edits.append(TextEdit(start, end, text, len(self._edits)))

    def rewrite_argument(self, decl: Declaration, prop: NodeProperty, value: str) -> None:
        """Replace one property's argument with a string literal.

        Name and description missing from the call are appended as keyword
        arguments; a missing owner option is an error.
        """
        node = self._property_node(decl, prop)
        literal = string_literal(value)
        if node is not None:
            start, end = self.span(node)
            self._queue(start, end, literal)
            return
        if prop is NodeProperty.OWNER:
            raise PropertyNotPresentError(decl.node_id, prop.value)
        call = decl.call
        last = max((*call.args, *(kw.value for kw in call.keywords)), key=lambda n: self.span(n)[1])
        keyword = self.schema.slot_for(prop).keyword
        self._queue(self.span(last)[1], self.span(last)[1], f", {keyword}={literal}")

    def insert_statement(self, entry: EntryPoint, statement: str) -> None:
        """Insert before the function's trailing return, else after its last statement."""
        body = entry.function.body
        last = body[-1]
        start, end = self.span(last)
        prefix = self.text[self._line_start(last.lineno):start]
        if isinstance(last, ast.Return):
            if prefix.strip():
                self._queue(start, start, f"{statement}; ")
            else:
                self._queue(self._line_start(last.lineno), self._line_start(last.lineno), f"{prefix}{statement}\n")
            return
        suffix = self.text[end:self._line_end(last.end_lineno or last.lineno)].strip()
        indent = prefix if not prefix.strip() else None
        if indent is None or (suffix and not suffix.startswith("#")):
            self._queue(end, end, f"; {statement}")
            return
        pos = self._line_end(last.end_lineno or last.lineno)
        if pos == len(self.text) and not self.text.endswith(("\n", "\r")):
            self._queue(pos, pos, f"\n{indent}{statement}")
        else:
            self._queue(pos, pos, f"{indent}{statement}\n")

    def remove_statement(self, decl: Declaration) -> None:
        """Delete the whole statement holding the declaration."""
        stmt, block = decl.statement, decl.block
        if stmt is None or block is None or not self._is_root_call(stmt, decl.call):
            raise SourceEditError(
                f"Declaration of {decl.node_id!r} (line {decl.line}) is not a standalone statement"
            )
        removed = self._removed.get(id(block), 0) + 1
        self._removed[id(block)] = removed
        start, end = self.span(stmt)
        if removed == len(block):
            # An emptied block still needs a statement.
            self._queue(start, end, "pass")
            return
        first, last = stmt.lineno, stmt.end_lineno or stmt.lineno
        before = self.text[self._line_start(first):start]
        after = self.text[end:self._line_end(last)]
        if not before.strip() and (not after.strip() or after.strip().startswith("#")):
            self._queue(self._line_start(first), self._line_end(last), "")
            return
        if m := re.match(r"[ \t]*;[ \t]*", after):
            end += m.end()
        elif m := re.search(r";[ \t]*$", before):
            start -= len(m.group(0))
        self._queue(start, end, "")

    @staticmethod
    def _is_root_call(stmt: ast.stmt, call: ast.Call) -> bool:
        """True if ``call`` heads the statement's value (method chains allowed)."""
        value = getattr(stmt, "value", None)
        while isinstance(value, ast.Call):
            if value is call:
                return True
            func = value.func
            value = func.value if isinstance(func, ast.Attribute) else None
        return False

    @property
    def edit_count(self) -> int:
        return len(self._edits)

    def apply(self) -> str:
        """Return the source with every queued edit applied."""
        ordered = sorted(self._edits, key=lambda e: (e.start, not e.is_insertion, e.order))
        for prev, cur in zip(ordered, ordered[1:]):
            if cur.start < prev.end:
                raise SourceEditError(f"Overlapping source edits at offset {cur.start}")
        text = self.text
        for edit in reversed(ordered):
            text = text[:edit.start] + edit.text + text[edit.end:]
        return text
