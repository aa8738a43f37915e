"""Shared fixtures for the calmsync test suite."""

from __future__ import annotations

import pytest

from calmsync.builder import new_architecture, with_meta, with_owner
from calmsync.config import get_settings
from calmsync.schema import Architecture, NodeType


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Each test sees settings built from its own environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def shop() -> Architecture:
    """Small valid architecture: a container holding an API and its database."""
    arch = new_architecture("shop", "Shop", "Online shop")
    arch.define_node("customer", NodeType.ACTOR, "Customer", "", with_owner("marketing"))
    arch.define_node("platform", NodeType.SYSTEM, "Platform", "Everything we run", with_owner("platform"))
    arch.define_node(
        "api", NodeType.SERVICE, "API", "Public API",
        with_owner("platform", "CC-1"),
        with_meta({"health-endpoint": "/health"}),
    )
    arch.define_node(
        "orders-db", NodeType.DATABASE, "Orders DB", "Stores orders",
        with_owner("dba"),
        with_meta({"backup-schedule": "daily"}),
    )
    arch.composed_of("platform-parts", "", "platform", ["api", "orders-db"])
    arch.interacts("customer-uses-api", "Customer places orders", "customer", ["api"])
    arch.connect("api-db", "API stores orders", "api", "orders-db", protocol="JDBC", encrypted=True)
    arch.define_flow("checkout", "Checkout").steps(
        ("customer-uses-api", "Customer submits the cart"),
        ("api-db", "Order is stored"),
    )
    return arch
