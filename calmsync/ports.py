"""Ports for the outside world: layout persistence and image rendering.

The studio service depends only on these protocols.  Hosts supply
concrete adapters (a file store, a subprocess around a diagram tool);
tests supply in-memory fakes.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field


class Position(BaseModel):
    """Canvas coordinates of one node."""
    x: float = 0.0
    y: float = 0.0


class Layout(BaseModel):
    """Node positions keyed by node id, persisted per architecture."""
    architecture_id: str = ""
    nodes: dict[str, Position] = Field(default_factory=dict)

    def position(self, node_id: str) -> Position | None:
        return self.nodes.get(node_id)

    def place(self, node_id: str, x: float, y: float) -> Layout:
        self.nodes[node_id] = Position(x=x, y=y)
        return self

    def prune(self, node_ids: list[str]) -> Layout:
        """Drop positions of nodes no longer in ``node_ids``."""
        keep = set(node_ids)
        self.nodes = {k: v for k, v in self.nodes.items() if k in keep}
        return self


@runtime_checkable
class LayoutStore(Protocol):
    """Loads and saves layouts by architecture id."""

    def load(self, architecture_id: str) -> Layout:
        """Return the stored layout, or an empty one when none exists."""
        ...

    def save(self, architecture_id: str, layout: Layout) -> None: ...


@runtime_checkable
class Rasterizer(Protocol):
    """Turns diagram text into an image.

    Implementations raise ``RasterizerError`` with the tool's diagnostic
    output when rendering fails.
    """

    def rasterize(self, diagram_text: str) -> bytes: ...
