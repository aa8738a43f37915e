"""Tests for calmsync.builder: node options and config helpers."""

from __future__ import annotations

import pytest

from calmsync.builder import (
    availability_config,
    circuit_breaker_config,
    connect_nodes,
    failover_config,
    merge_configs,
    new_architecture,
    performance_config,
    requirement,
    requirement_url,
    security_config,
    with_control,
    with_cost_center,
    with_interfaces,
    with_meta,
    with_owner,
    with_tags,
)
from calmsync.schema import Interface, NodeType


class TestNodeOptions:
    """``with_*`` options configure a node before registration."""

    def test_owner_and_cost_center(self) -> None:
        arch = new_architecture("a", "A")
        node = arch.define_node("n", NodeType.SERVICE, "N", "", with_owner("team", "CC-9"))
        assert node.owner == "team"
        assert node.cost_center == "CC-9"

    def test_cost_center_alone(self) -> None:
        node = new_architecture("a", "A").define_node("n", NodeType.QUEUE, "N", "", with_cost_center("CC-2"))
        assert node.owner is None
        assert node.cost_center == "CC-2"

    def test_meta_merges(self) -> None:
        node = new_architecture("a", "A").define_node(
            "n", NodeType.SERVICE, "N", "", with_meta({"a": 1}), with_meta({"b": 2}), with_tags("x", "y")
        )
        assert node.metadata == {"a": 1, "b": 2, "tags": ["x", "y"]}

    def test_interfaces_and_controls(self) -> None:
        node = new_architecture("a", "A").define_node(
            "n", NodeType.SERVICE, "N", "",
            with_interfaces(Interface(unique_id="http", protocol="HTTP", port=80)),
            with_control("sec", "Security", requirement("https://policy/sec", security_config("AES", "all"))),
        )
        assert node.interface("http") is not None
        assert node.interface("http").port == 80
        assert node.controls["sec"].requirements[0].config == {"algorithm": "AES", "scope": "all"}


class TestConnectNodes:
    """Connecting registered nodes derives the relationship id."""

    def test_default_id(self) -> None:
        arch = new_architecture("a", "A")
        api = arch.define_node("api", NodeType.SERVICE, "API")
        db = arch.define_node("db", NodeType.DATABASE, "DB")
        rel = connect_nodes(arch, api, db, "reads", via=(["out"], ["sql"]), protocol="JDBC")
        assert rel.unique_id == "api-connects-db"
        assert rel.connects is not None
        assert rel.connects.destination.interfaces == ["sql"]
        assert rel.protocol == "JDBC"

    def test_explicit_id(self) -> None:
        arch = new_architecture("a", "A")
        api = arch.define_node("api", NodeType.SERVICE, "API")
        db = arch.define_node("db", NodeType.DATABASE, "DB")
        assert connect_nodes(arch, api, db, unique_id="r1").unique_id == "r1"


class TestConfigHelpers:
    """Config helpers produce CALM-style keys."""

    def test_keys(self) -> None:
        assert performance_config(200, 100) == {"p99-latency-ms": 200, "p95-latency-ms": 100}
        assert availability_config(99.9, 60)["uptime-percentage"] == 99.9
        assert failover_config(15, 5, True)["automatic-failover"] is True
        assert circuit_breaker_config(50, 30, 10)["minimum-calls-before-opening"] == 10

    def test_requirement_url(self) -> None:
        req = requirement_url("https://policy/x", "https://configs/x.yaml")
        assert req.config is None
        assert req.config_url == "https://configs/x.yaml"

    def test_merge(self) -> None:
        merged = merge_configs(security_config("AES", "all"), performance_config(1, 2))
        assert list(merged) == ["algorithm", "scope", "p99-latency-ms", "p95-latency-ms"]

    def test_merge_conflict(self) -> None:
        with pytest.raises(ValueError, match="algorithm"):
            merge_configs(security_config("AES", "all"), {"algorithm": "RSA"})
