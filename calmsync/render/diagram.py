"""Plain D2 renderer.

One-directional: nodes nest into container blocks following the
containment map, then every connects/interacts relationship becomes an
edge between fully qualified paths.  Composed-of relationships only
contribute nesting.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from calmsync.grammar import label
from calmsync.config import get_settings
from calmsync.containment import ContainmentMap, diagram_key

if TYPE_CHECKING:
    from calmsync.schema import Architecture, Node, Relationship

INDENT = "  "

CLASSES_BLOCK = """\
classes: {
  actor: {
    shape: person
    style.fill: "#e1f5fe"
  }
  service: {
    shape: rectangle
    style.fill: "#e8f5e9"
    style.border-radius: 8
  }
  database: {
    shape: cylinder
    style.fill: "#fff3e0"
  }
  queue: {
    shape: queue
    style.fill: "#f3e5f5"
  }
  system: {
    shape: rectangle
    style.fill: "#fafafa"
    style.stroke-dash: 3
  }
  webclient: {
    shape: page
    style.fill: "#ede7f6"
  }
}"""


def header_lines(arch: Architecture, direction: str | None = None) -> list[str]:
    """Title comments, layout direction and the shape classes."""
    return [
        f"# CALM Architecture: {label(arch.name, arch.unique_id)}",
        "# Generated by calmsync",
        "",
        f"direction: {direction or get_settings().diagram_direction}",
        "",
        CLASSES_BLOCK,
        "",
    ]


def tooltip(owner: str) -> str:
    text = label(owner, "").replace("\\", "\\\\").replace('"', '\\"')
    return f'tooltip: "Owner: {text}"'


def edge_label(rel: Relationship) -> str:
    """``protocol (classification)``, either part omitted when unset."""
    parts = []
    if rel.protocol:
        parts.append(rel.protocol)
    if rel.data_classification:
        parts.append(f"({rel.data_classification})")
    return label(" ".join(parts), "")


def node_start(node: Node) -> str:
    """``<key>: <label> {``; the label falls back to the key so it is never blank."""
    key = diagram_key(node.unique_id)
    return f"{key}: {label(node.name, node.unique_id) or key} {{"


def edges(rel: Relationship, cmap: ContainmentMap) -> list[tuple[str, str]]:
    """``(source, destination)`` diagram paths drawn for one relationship."""
    if rel.connects is not None:
        return [(cmap.path(rel.connects.source.node), cmap.path(rel.connects.destination.node))]
    if rel.interacts is not None:
        actor = diagram_key(rel.interacts.actor)
        return [(actor, cmap.path(target)) for target in rel.interacts.nodes]
    return []


def _render_node(
    out: list[str], arch: Architecture, cmap: ContainmentMap, node: Node, depth: int
) -> None:
    pad = INDENT * depth
    out.append(f"{pad}{node_start(node)}")
    out.append(f"{pad}{INDENT}class: {node.node_type.value}")
    if node.owner:
        out.append(f"{pad}{INDENT}{tooltip(node.owner)}")
    for child in cmap.children(arch, node.unique_id):
        _render_node(out, arch, cmap, child, depth + 1)
    out.append(f"{pad}}}")


def render_d2(arch: Architecture, *, direction: str | None = None) -> str:
    """Render ``arch`` as plain D2 text."""
    cmap = ContainmentMap.from_architecture(arch)
    out = header_lines(arch, direction)
    for node in cmap.roots(arch):
        _render_node(out, arch, cmap, node, 0)

    out.extend(["", "# Relationships"])
    for rel in arch.relationships:
        text = edge_label(rel) if rel.connects is not None else ""
        for src, dst in edges(rel, cmap):
            out.append(f"{src} -> {dst}: {text}" if text else f"{src} -> {dst}")
    return "\n".join(out) + "\n"
