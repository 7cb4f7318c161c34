"""Tests for notification fan-out: room selection, payload split and failure isolation."""

from __future__ import annotations

from types import SimpleNamespace
from uuid import uuid4

import pytest
from structlog.testing import capture_logs

from whitelabel.realtime.events import Audience, ChangeKind, EntityType, event_name
from whitelabel.realtime.notifier import GatewayNotifier, NullNotifier, plan_fan_out

TENANT_P = "tenant-p"
TENANT_Q = "tenant-q"


@pytest.fixture
def notifier(transport) -> GatewayNotifier:
    return GatewayNotifier(transport)


def _product(**overrides) -> dict:
    product = {
        "id": "prod-1",
        "name": "Desk Lamp",
        "price": 49.9,
        "description": "Warm light",
        "supplier_id": "sup-1",
        "external_id": "ext-77",
        "client_id": TENANT_P,
        "has_discount": True,
        "discount_value": "0.10",
    }
    product.update(overrides)
    return product


# ---------------------------------------------------------------------------
# Event naming
# ---------------------------------------------------------------------------


def test_event_names_per_audience() -> None:
    assert event_name(EntityType.PRODUCT, ChangeKind.CREATED, Audience.ALL_TENANT_MEMBERS) == (
        "product:created"
    )
    assert event_name(EntityType.PRODUCT, ChangeKind.UPDATED, Audience.TENANT_ADMINS) == (
        "product:updated:admin"
    )
    assert event_name(EntityType.USER, ChangeKind.REMOVED, Audience.OWNER_MEMBERS) == (
        "user:removed:member"
    )
    assert event_name(EntityType.SUPPLIER, ChangeKind.CREATED, Audience.GLOBAL_ADMINS) == (
        "supplier:created"
    )


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


def test_plan_unscoped_goes_to_global_admins_only() -> None:
    events = plan_fan_out(
        EntityType.SUPPLIER,
        ChangeKind.CREATED,
        full={"id": "s1", "apiUrl": "https://x"},
        reduced={"id": "s1"},
        scope=None,
    )

    assert len(events) == 1
    assert events[0].room == "admins"
    assert events[0].audience is Audience.GLOBAL_ADMINS
    assert events[0].payload == {"id": "s1", "apiUrl": "https://x"}


def test_plan_scoped_order_and_payload_split() -> None:
    full = {"id": "p1", "supplierId": "sup-1"}
    reduced = {"id": "p1"}
    events = plan_fan_out(
        EntityType.PRODUCT,
        ChangeKind.UPDATED,
        full=full,
        reduced=reduced,
        scope=TENANT_P,
        owner_tenant_id=TENANT_Q,
    )

    assert [(e.room, e.event_name) for e in events] == [
        ("tenant:tenant-p", "product:updated"),
        ("tenant:tenant-p:admins", "product:updated:admin"),
        ("tenant:tenant-p:principal:tenant-q", "product:updated:member"),
    ]
    assert events[0].payload is reduced
    assert events[1].payload is full
    assert events[2].payload is reduced
    assert all(e.tenant_id == TENANT_P for e in events)


def test_plan_scoped_without_owner_skips_member_room() -> None:
    events = plan_fan_out(
        EntityType.SUPPLIER,
        ChangeKind.UPDATED,
        full={"id": "s1"},
        reduced={"id": "s1"},
        scope=TENANT_P,
    )
    assert [e.room for e in events] == ["tenant:tenant-p", "tenant:tenant-p:admins"]


def test_admin_envelope_is_marked() -> None:
    member, admin = plan_fan_out(
        EntityType.PRODUCT,
        ChangeKind.CREATED,
        full={"id": "p1"},
        reduced={"id": "p1"},
        scope=TENANT_P,
    )

    assert member.envelope() == {"message": "New product available", "data": {"id": "p1"}}
    assert admin.envelope()["isAdminEvent"] is True


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


async def test_product_update_reaches_members_and_admins(notifier, transport) -> None:
    sent = await notifier.product_updated(_product())

    assert sent == 3
    member_events = transport.events_to("tenant:tenant-p")
    assert member_events == [
        (
            "product:updated",
            {
                "message": "Product updated",
                "data": {"id": "prod-1", "name": "Desk Lamp", "price": 49.9},
            },
        )
    ]

    [(name, body)] = transport.events_to("tenant:tenant-p:admins")
    assert name == "product:updated:admin"
    assert body["isAdminEvent"] is True
    assert body["data"]["supplierId"] == "sup-1"
    assert body["data"]["externalId"] == "ext-77"
    assert body["data"]["clientId"] == TENANT_P

    [(name, body)] = transport.events_to("tenant:tenant-p:principal:tenant-p")
    assert name == "product:updated:member"
    assert set(body["data"]) == {"id", "name", "price"}


async def test_reduced_payload_never_leaks_admin_fields(notifier, transport) -> None:
    await notifier.product_created(_product())

    for event, body, room in transport.emitted:
        if room.endswith(":admins"):
            continue
        assert "supplierId" not in body["data"]
        assert "externalId" not in body["data"]
        assert "isAdminEvent" not in body


async def test_explicit_scope_overrides_owner(notifier, transport) -> None:
    await notifier.product_created(_product(), tenant_id=TENANT_Q)

    rooms = [room for _, _, room in transport.emitted]
    assert rooms == [
        "tenant:tenant-q",
        "tenant:tenant-q:admins",
        "tenant:tenant-q:principal:tenant-p",
    ]


async def test_accepts_attribute_objects(notifier, transport) -> None:
    product = SimpleNamespace(id="prod-2", name="Chair", price=120, client_id=TENANT_P)
    assert await notifier.product_created(product) == 3
    assert transport.events_to("tenant:tenant-p")[0][1]["data"] == {
        "id": "prod-2",
        "name": "Chair",
        "price": 120.0,
    }


async def test_unscoped_supplier_goes_to_global_admins(notifier, transport) -> None:
    sent = await notifier.supplier_created({"id": "s1", "name": "Acme", "api_url": "https://acme"})

    assert sent == 1
    assert transport.emitted == [
        (
            "supplier:created",
            {
                "message": "Supplier created",
                "data": {"id": "s1", "name": "Acme", "apiUrl": "https://acme"},
            },
            "admins",
        )
    ]


async def test_tenant_update_targets_the_tenant_itself(notifier, transport) -> None:
    await notifier.tenant_updated(
        {"id": TENANT_P, "name": "Devnology", "domain": "devnology.com", "is_active": True}
    )

    [(name, body)] = transport.events_to("tenant:tenant-p")
    assert name == "tenant:updated"
    assert "isActive" not in body["data"]
    [(_, admin_body)] = transport.events_to("tenant:tenant-p:admins")
    assert admin_body["data"]["isActive"] is True


async def test_tenant_created_goes_to_global_admins(notifier, transport) -> None:
    await notifier.tenant_created({"id": TENANT_Q, "name": "New store"})
    assert [room for _, _, room in transport.emitted] == ["admins"]


async def test_user_update_carries_name_only_to_members(notifier, transport) -> None:
    await notifier.user_updated(
        {"id": "u1", "name": "Ana", "email": "ana@in8.com", "role": "user", "client_id": TENANT_P}
    )

    [(_, body)] = transport.events_to("tenant:tenant-p")
    assert body["data"] == {"id": "u1", "name": "Ana"}
    [(_, admin_body)] = transport.events_to("tenant:tenant-p:admins")
    assert admin_body["data"]["email"] == "ana@in8.com"


async def test_removal_carries_identifier_only(notifier, transport) -> None:
    sent = await notifier.product_removed("prod-1", tenant_id=TENANT_P)

    assert sent == 3
    [(name, body)] = transport.events_to("tenant:tenant-p")
    assert name == "product:removed"
    assert body["data"] == {"id": "prod-1"}
    [(_, admin_body)] = transport.events_to("tenant:tenant-p:admins")
    assert admin_body["data"] == {"id": "prod-1", "tenantId": TENANT_P}


async def test_repeated_removal_emits_again(notifier, transport) -> None:
    await notifier.user_removed("u1", tenant_id=TENANT_P)
    await notifier.user_removed("u1", tenant_id=TENANT_P)

    events = transport.events_to("tenant:tenant-p")
    assert len(events) == 2
    assert events[0] == events[1]


async def test_supplier_removal_has_no_member_event(notifier, transport) -> None:
    await notifier.supplier_removed("s1", tenant_id=TENANT_P)
    assert [room for _, _, room in transport.emitted] == [
        "tenant:tenant-p",
        "tenant:tenant-p:admins",
    ]


async def test_unscoped_removal_goes_to_global_admins(notifier, transport) -> None:
    await notifier.tenant_removed(TENANT_Q)
    assert transport.emitted == [
        ("tenant:removed", {"message": "Store removed", "data": {"id": TENANT_Q}}, "admins")
    ]


async def test_failed_emit_is_skipped(notifier, transport) -> None:
    transport.fail_emit_to.add("tenant:tenant-p:admins")

    sent = await notifier.product_updated(_product())

    assert sent == 2
    assert transport.events_to("tenant:tenant-p:admins") == []
    assert len(transport.events_to("tenant:tenant-p:principal:tenant-p")) == 1


async def test_invalid_entity_is_swallowed(notifier, transport) -> None:
    assert await notifier.product_created({"name": "no id"}) == 0
    assert transport.emitted == []


async def test_null_notifier_discards(transport) -> None:
    notifier = NullNotifier()
    assert await notifier.product_created(_product()) == 0
    assert await notifier.user_removed("u1", tenant_id=TENANT_P) == 0


# ---------------------------------------------------------------------------
# Failure isolation and identifier coercion
# ---------------------------------------------------------------------------


async def test_fan_out_never_raises(notifier, transport) -> None:
    """Every push is attempted and logged; nothing propagates to the mutation."""
    with capture_logs() as logs:
        assert await notifier.product_updated(_product()) == 3

        transport.fail_emit_to.add("tenant:tenant-p")
        assert await notifier.product_updated(_product()) == 2

    assert [room for _, _, room in transport.emitted] == [
        "tenant:tenant-p",
        "tenant:tenant-p:admins",
        "tenant:tenant-p:principal:tenant-p",
        "tenant:tenant-p:admins",
        "tenant:tenant-p:principal:tenant-p",
    ]
    failed = [entry for entry in logs if entry["event"] == "notification_failed"]
    assert len(failed) == 1
    assert failed[0]["event_name"] == "product:updated"
    assert failed[0]["room"] == "tenant:tenant-p"
    dispatched = [entry for entry in logs if entry["event"] == "notification_dispatched"]
    assert len(dispatched) == 5


async def test_uuid_identifiers_are_sent_as_strings(notifier, transport) -> None:
    product_id, tenant_id = uuid4(), uuid4()

    sent = await notifier.product_updated(_product(id=product_id, client_id=tenant_id))

    assert sent == 3
    [(_, body)] = transport.events_to(f"tenant:{tenant_id}")
    assert body["data"]["id"] == str(product_id)
    [(_, admin_body)] = transport.events_to(f"tenant:{tenant_id}:admins")
    assert admin_body["data"]["clientId"] == str(tenant_id)


async def test_uuid_scope_on_removal(notifier, transport) -> None:
    tenant_id = uuid4()

    sent = await notifier.product_removed(uuid4(), tenant_id=tenant_id)

    assert sent == 3
    [(_, admin_body)] = transport.events_to(f"tenant:{tenant_id}:admins")
    assert admin_body["data"]["tenantId"] == str(tenant_id)
    assert all(isinstance(data["data"]["id"], str) for _, data, _ in transport.emitted)
