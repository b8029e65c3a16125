import pytest
from pytest_archon import archrule

ADAPTERS = [
    "cqrs_ddd_challenges.persistence*",
    "cqrs_ddd_challenges.memory*",
    "cqrs_ddd_challenges.delivery*",
]


def test_domain_isolation() -> None:
    """
    Domain types must stay free of flows and infrastructure.
    """
    rule = archrule("domain_isolation").match("cqrs_ddd_challenges.domain")
    for pattern in [*ADAPTERS, "cqrs_ddd_challenges.actions*", "sqlalchemy*", "httpx*"]:
        rule = rule.should_not_import(pattern)
    rule.check("cqrs_ddd_challenges")


@pytest.mark.parametrize(
    "module",
    [
        "cqrs_ddd_challenges.actions*",
        "cqrs_ddd_challenges.session",
        "cqrs_ddd_challenges.users",
        "cqrs_ddd_challenges.ports",
    ],
)
def test_flows_depend_on_ports_only(module: str) -> None:
    """
    Challenge flows talk to storage and delivery through ports, never to a
    concrete adapter or driver.
    """
    rule = archrule("flows_use_ports").match(module)
    for pattern in [*ADAPTERS, "sqlalchemy*", "httpx*", "twilio*"]:
        rule = rule.should_not_import(pattern)
    rule.check("cqrs_ddd_challenges")


def test_persistence_layering() -> None:
    """
    SQL adapters must not depend on the in-memory fakes or on delivery.
    """
    (
        archrule("persistence_layering")
        .match("cqrs_ddd_challenges.persistence*")
        .should_not_import("cqrs_ddd_challenges.memory*")
        .should_not_import("cqrs_ddd_challenges.delivery*")
        .should_not_import("cqrs_ddd_challenges.actions*")
        .check("cqrs_ddd_challenges")
    )


def test_memory_adapters_are_driver_free() -> None:
    """
    In-memory adapters run without any database or HTTP driver installed.
    """
    (
        archrule("memory_driver_free")
        .match("cqrs_ddd_challenges.memory*")
        .should_not_import("sqlalchemy*")
        .should_not_import("httpx*")
        .should_not_import("cqrs_ddd_challenges.persistence*")
        .check("cqrs_ddd_challenges")
    )
