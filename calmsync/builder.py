"""Python DSL for declaring architectures.

A program declares its architecture with ordered construction calls::

    def build_architecture() -> Architecture:
        arch = new_architecture("shop", "Shop", "Online shop")
        arch.define_node("api", NodeType.SERVICE, "API", "Public API",
                         with_owner("platform", "CC-1"),
                         with_meta({"health-endpoint": "/health"}))
        arch.connect("api-db", "API reads orders", "api", "orders-db", protocol="JDBC")
        return arch

Option callables (``with_*``) configure a node before registration.
Requirement and config helpers produce ``Requirement`` values and plain
configuration dicts for controls.
"""

from __future__ import annotations

from typing import Any

from calmsync.schema import Architecture, Interface, Node, NodeOption, Relationship, Requirement

# ── Construction ─────────────────────────────────────


def new_architecture(unique_id: str, name: str, description: str = "") -> Architecture:
    return Architecture(unique_id=unique_id, name=name, description=description)


def with_owner(owner: str, cost_center: str | None = None) -> NodeOption:
    """Set the owning team and, optionally, the cost center."""
    def apply(node: Node) -> None:
        node.owner = owner
        if cost_center is not None:
            node.cost_center = cost_center
    return apply


def with_cost_center(cost_center: str) -> NodeOption:
    def apply(node: Node) -> None:
        node.cost_center = cost_center
    return apply


def with_meta(metadata: dict[str, Any]) -> NodeOption:
    def apply(node: Node) -> None:
        node.metadata.update(metadata)
    return apply


def with_tags(*tags: str) -> NodeOption:
    def apply(node: Node) -> None:
        node.metadata["tags"] = list(tags)
    return apply


def with_interfaces(*interfaces: Interface) -> NodeOption:
    def apply(node: Node) -> None:
        node.interfaces.extend(interfaces)
    return apply


def with_control(control_id: str, description: str, *requirements: Requirement) -> NodeOption:
    def apply(node: Node) -> None:
        node.add_control(control_id, description, *requirements)
    return apply


def connect_nodes(
    arch: Architecture,
    source: Node,
    destination: Node,
    description: str = "",
    *,
    unique_id: str | None = None,
    via: tuple[list[str], list[str]] | None = None,
    **fields: Any,
) -> Relationship:
    """Connect two registered nodes, deriving the relationship id.

    The id defaults to ``"<source>-connects-<destination>"``.  ``via`` is a
    ``(source_interfaces, destination_interfaces)`` pair.
    """
    relationship_id = unique_id or f"{source.unique_id}-connects-{destination.unique_id}"
    source_interfaces, destination_interfaces = via if via is not None else (None, None)
    return arch.connect(
        relationship_id,
        description,
        source.unique_id,
        destination.unique_id,
        source_interfaces=source_interfaces,
        destination_interfaces=destination_interfaces,
        **fields,
    )


# ── Requirements ─────────────────────────────────────


def requirement(url: str, config: Any) -> Requirement:
    """A requirement with inline configuration."""
    return Requirement(requirement_url=url, config=config)


def requirement_url(url: str, config_url: str) -> Requirement:
    """A requirement whose configuration lives in a separate document."""
    return Requirement(requirement_url=url, config_url=config_url)


# ── Config helpers ───────────────────────────────────


def security_config(algorithm: str, scope: str) -> dict[str, Any]:
    return {"algorithm": algorithm, "scope": scope}


def performance_config(p99_latency_ms: int, p95_latency_ms: int) -> dict[str, Any]:
    return {"p99-latency-ms": p99_latency_ms, "p95-latency-ms": p95_latency_ms}


def availability_config(uptime_percentage: float, monitoring_interval_seconds: int) -> dict[str, Any]:
    return {
        "uptime-percentage": uptime_percentage,
        "monitoring-interval-seconds": monitoring_interval_seconds,
    }


def failover_config(rto_minutes: int, rpo_minutes: int, automatic: bool) -> dict[str, Any]:
    return {"rto-minutes": rto_minutes, "rpo-minutes": rpo_minutes, "automatic-failover": automatic}


def circuit_breaker_config(
    failure_threshold_percentage: int, wait_duration_seconds: int, minimum_calls: int
) -> dict[str, Any]:
    return {
        "failure-threshold-percentage": failure_threshold_percentage,
        "wait-duration-seconds": wait_duration_seconds,
        "minimum-calls-before-opening": minimum_calls,
    }


def merge_configs(*configs: dict[str, Any]) -> dict[str, Any]:
    """Combine config dicts; a key present in more than one is an error."""
    merged: dict[str, Any] = {}
    for config in configs:
        for key, value in config.items():
            if key in merged:
                raise ValueError(f"config key {key!r} defined more than once")
            merged[key] = value
    return merged
