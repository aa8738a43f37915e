"""Tests for calmsync.render.source: the generated Python module."""

from __future__ import annotations

import ast

from calmsync.reference import build_architecture
from calmsync.render.source import py_literal, render_source
from calmsync.schema import Architecture, NodeType, TransitionDirection
from calmsync.source import SourceDocument


def _execute(source: str, function_name: str = "build_architecture") -> Architecture:
    namespace: dict = {}
    exec(compile(source, "<generated>", "exec"), namespace)
    return namespace[function_name]()


class TestGeneratedModule:
    """Executing the module rebuilds the model."""

    def test_shop(self, shop: Architecture) -> None:
        assert _execute(render_source(shop)) == shop

    def test_reference(self) -> None:
        arch = build_architecture()
        assert _execute(render_source(arch)) == arch

    def test_custom_schema_and_direction(self) -> None:
        arch = Architecture(unique_id="x", name='Quote "me"', calm_schema="https://example.com/calm.json")
        arch.define_node("a", NodeType.WEB_CLIENT, "A")
        arch.interacts("r", "", "a", ["a"], encrypted=False, metadata={"k": [1, 2.5, None]})
        arch.define_flow("f", "F").step("r", "back", direction=TransitionDirection.DESTINATION_TO_SOURCE)
        source = render_source(arch)
        ast.parse(source)
        assert _execute(source) == arch

    def test_function_name(self, shop: Architecture) -> None:
        assert _execute(render_source(shop, function_name="build_shop"), "build_shop") == shop


class TestPatchable:
    """Generated declarations are visible to the source-patch engine."""

    def test_declarations_found(self, shop: Architecture) -> None:
        doc = SourceDocument(render_source(shop))
        assert doc.declared_ids() == shop.node_ids
        assert doc.entry_point().receiver == "arch"


class TestLiterals:
    """JSON-like values become Python literals."""

    def test_values(self) -> None:
        assert py_literal({"a": [True, None, 1.5, "é"]}) == '{"a": [True, None, 1.5, "é"]}'
