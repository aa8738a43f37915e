"""Python DSL renderer.

Emits a module whose ``build_architecture()`` rebuilds the model through
``calmsync.builder`` calls.  The output is the starting point for the
program-source representation: after generation, node declarations are
kept in step with ``calmsync.source.apply_source_edit`` rather than by
regenerating the file.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from calmsync.schema import CALM_SCHEMA_URL, TransitionDirection

if TYPE_CHECKING:
    from pydantic import BaseModel

    from calmsync.schema import Architecture, Control, Node, Relationship

_MODULE_HEADER = '''\
"""Architecture definition for {title}.

Generated by calmsync.  Node declarations are patched in place by
calmsync.source; everything else in this file is left untouched.
"""

from calmsync.builder import (
    new_architecture,
    with_control,
    with_cost_center,
    with_interfaces,
    with_meta,
    with_owner,
)
from calmsync.schema import Architecture, Interface, NodeType, Requirement, TransitionDirection


def {function_name}() -> Architecture:
'''

_INDENT = "    "


def py_literal(value: Any) -> str:
    """Python source for a JSON-like value."""
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if value is None or isinstance(value, bool):
        return repr(value)
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(py_literal(v) for v in value) + "]"
    if isinstance(value, dict):
        return "{" + ", ".join(f"{py_literal(k)}: {py_literal(v)}" for k, v in value.items()) + "}"
    raise TypeError(f"cannot render {type(value).__name__} as a literal")


def _constructor(name: str, model: BaseModel) -> str:
    fields = model.model_dump(exclude_none=True)
    return f"{name}(" + ", ".join(f"{k}={py_literal(v)}" for k, v in fields.items()) + ")"


def _requirements(control: Control) -> list[str]:
    return [_constructor("Requirement", r) for r in control.requirements]


def _node_statement(node: Node) -> list[str]:
    options: list[str] = []
    if node.owner is not None:
        args = [py_literal(node.owner)]
        if node.cost_center is not None:
            args.append(py_literal(node.cost_center))
        options.append(f"with_owner({', '.join(args)})")
    elif node.cost_center is not None:
        options.append(f"with_cost_center({py_literal(node.cost_center)})")
    if node.metadata:
        options.append(f"with_meta({py_literal(node.metadata)})")
    if node.interfaces:
        options.append(
            "with_interfaces(" + ", ".join(_constructor("Interface", i) for i in node.interfaces) + ")"
        )
    for control_id, control in node.controls.items():
        args = [py_literal(control_id), py_literal(control.description), *_requirements(control)]
        options.append(f"with_control({', '.join(args)})")

    head = [py_literal(node.unique_id), f"NodeType.{node.node_type.name}", py_literal(node.name)]
    if node.description or options:
        head.append(py_literal(node.description))
    if not options:
        return [f"{_INDENT}arch.define_node({', '.join(head)})"]
    lines = [f"{_INDENT}arch.define_node("]
    lines.extend(f"{_INDENT * 2}{arg}," for arg in (*head, *options))
    lines.append(f"{_INDENT})")
    return lines


def _relationship_statement(rel: Relationship) -> str:
    args = [py_literal(rel.unique_id), py_literal(rel.description)]
    if rel.connects is not None:
        method = "connect"
        args += [py_literal(rel.connects.source.node), py_literal(rel.connects.destination.node)]
        if rel.connects.source.interfaces is not None:
            args.append(f"source_interfaces={py_literal(rel.connects.source.interfaces)}")
        if rel.connects.destination.interfaces is not None:
            args.append(f"destination_interfaces={py_literal(rel.connects.destination.interfaces)}")
    elif rel.interacts is not None:
        method = "interacts"
        args += [py_literal(rel.interacts.actor), py_literal(rel.interacts.nodes)]
    else:
        assert rel.composed_of is not None
        method = "composed_of"
        args += [py_literal(rel.composed_of.container), py_literal(rel.composed_of.nodes)]
    for name in ("protocol", "data_classification", "encrypted"):
        value = getattr(rel, name)
        if value is not None:
            args.append(f"{name}={py_literal(value)}")
    if rel.metadata:
        args.append(f"metadata={py_literal(rel.metadata)}")
    return f"{_INDENT}arch.{method}({', '.join(args)})"


def render_source(arch: Architecture, *, function_name: str = "build_architecture") -> str:
    """Render ``arch`` as a Python module using the builder DSL."""
    title = " ".join((arch.name or arch.unique_id or "an architecture").split())
    title = title.replace("\\", "").replace('"', "")
    out = [_MODULE_HEADER.format(title=title, function_name=function_name).rstrip("\n")]
    out.append(
        f"{_INDENT}arch = new_architecture("
        f"{py_literal(arch.unique_id)}, {py_literal(arch.name)}, {py_literal(arch.description)})"
    )
    if arch.calm_schema != CALM_SCHEMA_URL:
        out.append(f"{_INDENT}arch.calm_schema = {py_literal(arch.calm_schema)}")
    if arch.adrs:
        out.append(f"{_INDENT}arch.adrs.extend({py_literal(arch.adrs)})")
    if arch.metadata:
        out.append(f"{_INDENT}arch.metadata.update({py_literal(arch.metadata)})")
    for control_id, control in arch.controls.items():
        args = [py_literal(control_id), py_literal(control.description), *_requirements(control)]
        out.append(f"{_INDENT}arch.add_control({', '.join(args)})")

    if arch.nodes:
        out.extend(["", f"{_INDENT}# Nodes"])
        for node in arch.nodes:
            out.extend(_node_statement(node))

    if arch.relationships:
        out.extend(["", f"{_INDENT}# Relationships"])
        out.extend(_relationship_statement(rel) for rel in arch.relationships)

    for flow in arch.flows:
        out.append("")
        args = [py_literal(flow.unique_id), py_literal(flow.name), py_literal(flow.description)]
        if flow.metadata:
            args.append(f"metadata={py_literal(flow.metadata)}")
        out.append(f"{_INDENT}flow = arch.define_flow({', '.join(args)})")
        for t in flow.transitions:
            step = [py_literal(t.relationship_unique_id), py_literal(t.description)]
            if t.direction is not TransitionDirection.SOURCE_TO_DESTINATION:
                step.append(f"direction=TransitionDirection.{t.direction.name}")
            step.append(f"sequence_number={t.sequence_number}")
            out.append(f"{_INDENT}flow.step({', '.join(step)})")

    out.extend(["", f"{_INDENT}return arch", ""])
    return "\n".join(out)
