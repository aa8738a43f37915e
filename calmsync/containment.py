"""Containment map: node id -> direct parent id, derived from composed-of.

Shared by the plain and annotated diagram renderers so both nest blocks
and qualify edge endpoints identically.

Registration is first-wins: once a node has a parent, later composed-of
claims on it are ignored.  Self-claims and claims that would close a
cycle are ignored too, so every node has a finite, root-terminated chain.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from calmsync.schema import Architecture, Node

logger = logging.getLogger(__name__)


def sanitize_id(node_id: str) -> str:
    """Replace spaces so an id reads as one diagram word."""
    return node_id.replace(" ", "-")


_PLAIN_KEY_RE = re.compile(r"[\w-]+")


def is_plain_id(node_id: str) -> bool:
    """True when ``node_id`` is its own bare diagram key."""
    return _PLAIN_KEY_RE.fullmatch(node_id) is not None


def diagram_key(node_id: str) -> str:
    """D2 key for a node: bare when plain, double-quoted otherwise.

    ``diagram_key("my api") == "my-api"``, ``diagram_key("svc:api") == '"svc:api"'``.
    """
    key = sanitize_id(node_id)
    if is_plain_id(key):
        return key
    escaped = key.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n").replace("\r", "\\r")
    return f'"{escaped}"'


class ContainmentMap:
    """Parent lookup plus tree helpers for rendering."""

    __slots__ = ("_parents",)

    def __init__(self) -> None:
        self._parents: dict[str, str] = {}

    @classmethod
    def from_architecture(cls, arch: Architecture) -> ContainmentMap:
        """Build from the model's composed-of relationships, in model order.

        Only claims whose container and member are both nodes of the model
        are registered.
        """
        cmap = cls()
        known = set(arch.node_ids)
        for rel in arch.relationships:
            composed = rel.composed_of
            if composed is None or composed.container not in known:
                continue
            for member in composed.nodes:
                if member in known:
                    cmap.register(composed.container, member)
        return cmap

    def register(self, container: str, member: str) -> bool:
        """Record ``member`` as a child of ``container``; False if ignored."""
        if member == container:
            logger.debug("Ignoring self-containment of %s", member)
            return False
        if member in self._parents:
            logger.debug(
                "Ignoring claim of %s on %s (already inside %s)",
                container, member, self._parents[member],
            )
            return False
        if member in self.ancestors(container):
            logger.debug("Ignoring claim of %s on %s (would form a cycle)", container, member)
            return False
        self._parents[member] = container
        return True

    def parent(self, node_id: str) -> str | None:
        return self._parents.get(node_id)

    def ancestors(self, node_id: str) -> list[str]:
        """Ancestor ids of ``node_id``, root first, excluding the node itself."""
        chain: list[str] = []
        current = self._parents.get(node_id)
        while current is not None:
            chain.append(current)
            current = self._parents.get(current)
        chain.reverse()
        return chain

    def path(self, node_id: str) -> str:
        """Fully qualified diagram path, e.g. ``"platform.api"``."""
        return ".".join(diagram_key(i) for i in (*self.ancestors(node_id), node_id))

    def children(self, arch: Architecture, node_id: str) -> list[Node]:
        """Direct children of ``node_id`` in model order."""
        return [n for n in arch.nodes if self._parents.get(n.unique_id) == node_id]

    def roots(self, arch: Architecture) -> list[Node]:
        """Nodes without a parent, in model order."""
        return [n for n in arch.nodes if n.unique_id not in self._parents]

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._parents

    def __len__(self) -> int:
        return len(self._parents)
