"""Studio use case: keep layouts, program source and images in step.

An interactive editor sends whole models (after a diagram edit) or single
node actions; the service turns them into source edits, persists node
positions, and asks a rasterizer for a preview image when one is wired.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from calmsync.exceptions import RasterizerError
from calmsync.parser import parse_annotated
from calmsync.ports import Layout, LayoutStore, Rasterizer
from calmsync.render.diagram import render_d2
from calmsync.render.structural import load_structural
from calmsync.schema import Architecture
from calmsync.source.patch import (
    AddNodeEdit,
    DeleteNodeEdit,
    SourceEdit,
    SourcePatcher,
    SyncEdit,
    UpdateNodeEdit,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class NodeAction:
    """A single node mutation requested by an editor.

    ``action`` is one of ``add``, ``update`` or ``delete``; the remaining
    fields are read according to it.
    """
    action: str
    node_id: str
    node_type: str = ""
    name: str = ""
    description: str = ""
    prop: str = ""
    value: str = ""

    def to_edit(self) -> SourceEdit:
        match self.action:
            case "add":
                return AddNodeEdit(self.node_id, self.node_type, self.name, self.description)
            case "update":
                return UpdateNodeEdit(self.node_id, self.prop, self.value)
            case "delete":
                return DeleteNodeEdit(self.node_id)
            case _:
                raise ValueError(f"invalid action: {self.action!r}")


class StudioService:
    """Coordinates layout persistence, source synchronization and images."""

    def __init__(
        self,
        layout_store: LayoutStore,
        patcher: SourcePatcher | None = None,
        rasterizer: Rasterizer | None = None,
    ) -> None:
        self.layout_store = layout_store
        self.patcher = patcher or SourcePatcher()
        self.rasterizer = rasterizer

    # -- layout --------------------------------------------------------

    def load_layout(self, architecture_id: str) -> Layout:
        return self.layout_store.load(architecture_id)

    def save_layout(self, architecture_id: str, layout: Layout) -> None:
        if not layout.architecture_id:
            layout.architecture_id = architecture_id
        self.layout_store.save(architecture_id, layout)
        logger.debug("Saved layout for %s (%d node(s))", architecture_id, len(layout.nodes))

    # -- source --------------------------------------------------------

    def sync(self, source: str, arch: Architecture) -> str:
        return self.patcher.apply(source, SyncEdit(arch))

    def sync_from_structural(self, source: str, structural_text: str) -> str:
        """Sync ``source`` to a structural (JSON) document."""
        return self.sync(source, load_structural(structural_text))

    def sync_from_annotated(self, source: str, annotated_text: str) -> str:
        """Sync ``source`` to an annotated diagram edited by hand."""
        return self.sync(source, parse_annotated(annotated_text))

    def apply_node_action(self, source: str, action: NodeAction) -> str:
        """Apply one node action to ``source``.

        Raises:
            ValueError: ``action.action`` is not add, update or delete.
            SourceEditError: The edit could not be applied.
        """
        edit = action.to_edit()
        logger.info("Node action %s on %s", action.action, action.node_id)
        return self.patcher.apply(source, edit)

    # -- images --------------------------------------------------------

    def render_image(self, arch: Architecture) -> bytes | None:
        """Rasterize the diagram of ``arch``; ``None`` when unavailable."""
        if self.rasterizer is None:
            return None
        try:
            return self.rasterizer.rasterize(render_d2(arch))
        except RasterizerError as exc:
            logger.warning("Diagram rasterization failed: %s", exc)
            return None
