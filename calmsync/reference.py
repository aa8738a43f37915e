"""Reference e-commerce order-processing architecture.

A realistic model written with the builder DSL.  It doubles as sample
program source for the patch engine: every node is declared with a
literal id inside ``define_nodes``.
"""

from __future__ import annotations

from calmsync.builder import (
    availability_config,
    circuit_breaker_config,
    failover_config,
    new_architecture,
    performance_config,
    requirement,
    requirement_url,
    security_config,
    with_control,
    with_interfaces,
    with_meta,
    with_owner,
)
from calmsync.schema import Architecture, Interface, NodeType

POLICY = "https://internal-policy.example.com"

TIER_1 = {"tier": "tier-1", "business-criticality": "high"}
TIER_2 = {"tier": "tier-2", "business-criticality": "high"}


def add_global_controls(arch: Architecture) -> None:
    arch.add_control(
        "security",
        "Data encryption and secure communication requirements",
        requirement(f"{POLICY}/security/encryption-at-rest", security_config("AES-256", "all-data-stores")),
        requirement_url(f"{POLICY}/security/tls-1-3-minimum", "https://configs.example.com/security/tls-config.yaml"),
    )
    arch.add_control(
        "performance",
        "System-wide performance and scalability requirements",
        requirement(f"{POLICY}/performance/response-time-sla", performance_config(200, 100)),
    )
    arch.add_control(
        "high-availability",
        "System-wide uptime and availability requirements",
        requirement(f"{POLICY}/resilience/availability-sla", availability_config(99.9, 60)),
    )


def define_nodes(arch: Architecture) -> None:
    arch.define_node("customer", NodeType.ACTOR, "Customer", "A user who browses and purchases products.",
                     with_owner("marketing-team", "CC-1000"))
    arch.define_node("admin", NodeType.ACTOR, "Admin", "A staff member who manages products and orders.",
                     with_owner("ops-team", "CC-1000"))
    arch.define_node("ecommerce-system", NodeType.SYSTEM, "E-Commerce Platform",
                     "The overall e-commerce system containing microservices.",
                     with_owner("platform-team", "CC-2000"))
    arch.define_node("load-balancer", NodeType.SERVICE, "Load Balancer",
                     "High-availability entry point that distributes traffic to the services.",
                     with_owner("platform-team", "CC-2000"),
                     with_meta({**TIER_1, "health-endpoint": "/status",
                                "runbook": "https://runbooks.example.com/load-balancer"}),
                     with_interfaces(Interface(unique_id="lb-https", protocol="HTTPS", name="Public HTTPS Interface",
                                               port=443, host="api.shop.example.com")))
    arch.define_node("order-service", NodeType.SERVICE, "Order Service",
                     "Handles order creation and lifecycle management.",
                     with_owner("orders-team", "CC-3000"),
                     with_meta({**TIER_1, "health-endpoint": "/actuator/health",
                                "runbook": "https://runbooks.example.com/order-service"}),
                     with_interfaces(Interface(unique_id="order-api", protocol="REST", name="Order API", port=8080),
                                     Interface(unique_id="payment-publisher", protocol="AMQP")),
                     with_control("circuit-breaker", "Fault tolerance for downstream service calls",
                                  requirement(f"{POLICY}/resilience/circuit-breaker-policy",
                                              circuit_breaker_config(50, 30, 10))))
    arch.define_node("inventory-service", NodeType.SERVICE, "Inventory Service", "Manages product stock levels.",
                     with_owner("inventory-team", "CC-4000"),
                     with_meta({**TIER_2, "health-endpoint": "/health"}),
                     with_interfaces(Interface(unique_id="inventory-api", protocol="REST", port=8081)))
    arch.define_node("payment-service", NodeType.SERVICE, "Payment Service",
                     "Integrates with external payment providers.",
                     with_owner("payments-team", "CC-5000"),
                     with_meta({**TIER_1, "health-endpoint": "/health",
                                "runbook": "https://runbooks.example.com/payment-service"}),
                     with_control("compliance", "PCI-DSS compliance for payment processing",
                                  requirement_url("https://www.pcisecuritystandards.org/documents/PCI-DSS-v4.0",
                                                  "https://configs.example.com/compliance/pci-dss-config.json")))
    arch.define_node("order-queue", NodeType.QUEUE, "Order Payment Queue",
                     "Buffer for orders awaiting payment processing.",
                     with_owner("orders-team", "CC-3000"))
    arch.define_node("order-database", NodeType.DATABASE, "Order Database", "Main writable database for orders.",
                     with_owner("dba-team", "CC-3000"),
                     with_meta({"backup-schedule": "daily at 02:00 UTC", "data-classification": "PII"}),
                     with_interfaces(Interface(unique_id="order-sql", protocol="JDBC", port=5432,
                                               database="orders_v1")),
                     with_control("failover", "Disaster recovery and failover targets",
                                  requirement(f"{POLICY}/resilience/disaster-recovery-targets",
                                              failover_config(15, 5, True))))
    arch.define_node("inventory-db", NodeType.DATABASE, "Inventory Database", "Stores stock levels.",
                     with_owner("dba-team", "CC-4000"),
                     with_meta({"backup-schedule": "weekly at Sunday 03:00 UTC"}))


def wire_components(arch: Architecture) -> None:
    arch.composed_of("ecommerce-system-composition", "Services inside the platform", "ecommerce-system",
                     ["load-balancer", "order-service", "inventory-service", "payment-service", "order-queue"])
    arch.interacts("customer-interacts-lb", "Customer places orders", "customer", ["load-balancer"])
    arch.interacts("admin-interacts-lb", "Admin manages the catalogue", "admin", ["load-balancer"])
    arch.connect("lb-to-order", "Routes order requests", "load-balancer", "order-service",
                 source_interfaces=["lb-https"], destination_interfaces=["order-api"],
                 protocol="HTTPS", data_classification="PII", encrypted=True)
    arch.connect("order-to-inventory", "Checks stock before accepting an order", "order-service",
                 "inventory-service", protocol="HTTP", data_classification="Internal")
    arch.connect("order-to-database", "Persists orders", "order-service", "order-database",
                 protocol="JDBC", data_classification="PII", encrypted=True)
    arch.connect("order-to-queue", "Publishes orders awaiting payment", "order-service", "order-queue",
                 source_interfaces=["payment-publisher"], protocol="AMQP", data_classification="PII")
    arch.connect("queue-to-payment", "Delivers orders for payment", "order-queue", "payment-service",
                 protocol="AMQP", data_classification="PII")
    arch.connect("inventory-to-database", "Reads and updates stock", "inventory-service", "inventory-db",
                 protocol="JDBC", data_classification="Internal")


def define_flows(arch: Architecture) -> None:
    arch.define_flow("order-flow", "Customer Order Flow", "From browsing to a paid order.").steps(
        ("customer-interacts-lb", "Customer submits an order"),
        ("lb-to-order", "Load balancer forwards the order"),
        ("order-to-inventory", "Order service reserves stock"),
        ("order-to-database", "Order is stored"),
        ("order-to-queue", "Order is queued for payment"),
        ("queue-to-payment", "Payment service charges the customer"),
    )


def build_architecture() -> Architecture:
    arch = new_architecture(
        "ecommerce-platform-architecture",
        "E-Commerce Order Processing Platform",
        "A complete architecture for an e-commerce order processing system.",
    )
    arch.adrs.extend([
        "docs/adr/0001-use-message-queue-for-async-processing.md",
        "docs/adr/0002-use-oauth2-for-api-authentication.md",
    ])
    arch.add_meta("version", "1.0.0").add_meta("tags", ["ecommerce", "microservices", "orders"])
    add_global_controls(arch)
    define_nodes(arch)
    wire_components(arch)
    define_flows(arch)
    return arch
