"""Annotated D2 renderer.

The same picture as ``render_d2`` plus ``# @calm:`` comment annotations
carrying every model field, so ``parse_annotated(render_annotated(m)) == m``.
See ``calmsync.grammar`` for the line grammar.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from calmsync import grammar
from calmsync.containment import ContainmentMap, diagram_key, is_plain_id
from calmsync.render.diagram import INDENT, edge_label, header_lines, node_start, tooltip

if TYPE_CHECKING:
    from calmsync.schema import Architecture, Node, Relationship


def _dump(model: Any, **kwargs: Any) -> Any:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True, **kwargs)


def _architecture_lines(arch: Architecture) -> list[str]:
    lines = [
        grammar.text_line("id", arch.unique_id),
        grammar.text_line("name", arch.name),
        grammar.text_line("description", arch.description),
        grammar.text_line("schema", arch.calm_schema),
    ]
    if arch.adrs:
        lines.append(grammar.json_line("adrs", arch.adrs))
    if arch.metadata:
        lines.append(grammar.json_line("metadata", arch.metadata))
    if arch.controls:
        lines.append(grammar.json_line("controls", {k: _dump(c) for k, c in arch.controls.items()}))
    if arch.nodes:
        lines.append(grammar.json_line("node-order", arch.node_ids))
    return lines


def _node_lines(out: list[str], arch: Architecture, cmap: ContainmentMap, node: Node, depth: int) -> None:
    pad = INDENT * depth
    inner = pad + INDENT
    out.append(f"{pad}{node_start(node)}")
    out.append(grammar.text_line("id", node.unique_id, inner))
    out.append(grammar.text_line("type", node.node_type.value, inner))
    out.append(grammar.text_line("name", node.name, inner))
    if node.owner is not None:
        out.append(grammar.text_line("owner", node.owner, inner))
    if node.cost_center is not None:
        out.append(grammar.text_line("costCenter", node.cost_center, inner))
    if node.description:
        out.append(grammar.text_line("description", node.description, inner))
    if node.metadata:
        out.append(grammar.json_line("metadata", node.metadata, inner))
    if node.interfaces:
        out.append(grammar.json_line("interfaces", [_dump(i) for i in node.interfaces], inner))
    if node.controls:
        out.append(grammar.json_line("controls", {k: _dump(c) for k, c in node.controls.items()}, inner))
    out.append(f"{inner}class: {node.node_type.value}")
    if node.owner:
        out.append(f"{inner}{tooltip(node.owner)}")
    children = cmap.children(arch, node.unique_id)
    if children:
        out.append("")
    for child in children:
        _node_lines(out, arch, cmap, child, depth + 1)
    out.append(f"{pad}}}")


def _common_relationship_lines(rel: Relationship) -> list[str]:
    lines = [grammar.text_line("id", rel.unique_id, INDENT)]
    lines.append(grammar.text_line("type", rel.relationship_type.kind, INDENT))
    lines.append(grammar.text_line("description", rel.description, INDENT))
    if rel.protocol is not None:
        lines.append(grammar.text_line("protocol", rel.protocol, INDENT))
    if rel.data_classification is not None:
        lines.append(grammar.text_line("classification", rel.data_classification, INDENT))
    if rel.encrypted is not None:
        lines.append(grammar.text_line("encrypted", "true" if rel.encrypted else "false", INDENT))
    if rel.metadata:
        lines.append(grammar.json_line("metadata", rel.metadata, INDENT))
    return lines


def _relationship_lines(rel: Relationship, cmap: ContainmentMap) -> list[str]:
    connects, interacts = rel.connects, rel.interacts
    # Composed-of only nests blocks; an interacts without targets has no edge.
    if connects is None and (interacts is None or not interacts.nodes):
        return [grammar.json_line(grammar.RELATIONSHIP, _dump(rel))]

    out: list[str] = []
    if connects is not None:
        src = cmap.path(connects.source.node)
        dst = cmap.path(connects.destination.node)
        text = edge_label(rel)
        out.append(f"{src} -> {dst}: {text} {{" if text else f"{src} -> {dst} {{")
        out.extend(_common_relationship_lines(rel))
        if not is_plain_id(connects.source.node):
            out.append(grammar.text_line("source", connects.source.node, INDENT))
        if not is_plain_id(connects.destination.node):
            out.append(grammar.text_line("destination", connects.destination.node, INDENT))
        if connects.source.interfaces is not None:
            out.append(grammar.json_line("srcInterfaces", connects.source.interfaces, INDENT))
        if connects.destination.interfaces is not None:
            out.append(grammar.json_line("dstInterfaces", connects.destination.interfaces, INDENT))
        out.append("}")
        return out

    assert interacts is not None
    for target in interacts.nodes:
        out.append(f"{diagram_key(interacts.actor)} -> {cmap.path(target)} {{")
        out.extend(_common_relationship_lines(rel))
        out.append(grammar.text_line("actor", interacts.actor, INDENT))
        if not is_plain_id(target):
            out.append(grammar.text_line("target", target, INDENT))
        out.append("}")
    return out


def render_annotated(arch: Architecture, *, direction: str | None = None) -> str:
    """Render ``arch`` as annotated D2 text."""
    cmap = ContainmentMap.from_architecture(arch)
    out = header_lines(arch, direction)
    out[2:2] = _architecture_lines(arch)

    for node in cmap.roots(arch):
        _node_lines(out, arch, cmap, node, 0)
        out.append("")

    if arch.relationships:
        out.append("# Relationships")
        for rel in arch.relationships:
            out.extend(_relationship_lines(rel, cmap))
        out.append("")

    if arch.flows:
        out.append("# Flows")
        for flow in arch.flows:
            out.append(grammar.json_line(grammar.FLOW, _dump(flow, exclude={"transitions"})))
            for t in flow.transitions:
                out.append(grammar.json_line(grammar.FLOW_STEP, _dump(t)))
        out.append("")

    return "\n".join(out).rstrip("\n") + "\n"
