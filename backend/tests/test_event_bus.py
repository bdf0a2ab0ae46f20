"""Event bus and handler decorators."""

import logging
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from ivms.events import EventBus
from ivms.events import EventType
from ivms.events import audited
from ivms.events import event_bus
from ivms.events import publish_event
from ivms.events.decorators import row_to_event_data
from ivms.models.enums import AuditAction
from ivms.models.enums import CarStatus
from ivms.services.audit import AuditService
from ivms.services.notification_events import register_notification_handlers
from ivms.services.notification_events import unregister_notification_handlers


@pytest.mark.asyncio
async def test_publish_reaches_subscribers_until_unsubscribed():
    bus = EventBus()
    seen = []

    async def handler(data):
        seen.append(data["id"])

    bus.subscribe(EventType.CAR_RETURNED, handler)
    await bus.publish(EventType.CAR_RETURNED, {"id": "a"})
    await bus.publish(EventType.CAR_IN_TRANSIT, {"id": "ignored"})

    bus.unsubscribe(EventType.CAR_RETURNED, handler)
    await bus.publish(EventType.CAR_RETURNED, {"id": "b"})

    assert seen == ["a"]
    assert bus.subscriber_count(EventType.CAR_RETURNED) == 0


@pytest.mark.asyncio
async def test_failing_handler_is_logged_and_skipped(caplog):
    bus = EventBus()
    seen = []

    async def broken(data):
        raise RuntimeError("boom")

    async def healthy(data):
        seen.append(data)

    bus.subscribe(EventType.MAINTENANCE_CREATED, broken)
    bus.subscribe(EventType.MAINTENANCE_CREATED, healthy)

    with caplog.at_level(logging.ERROR):
        await bus.publish(EventType.MAINTENANCE_CREATED, {"id": "m-1"})

    assert seen == [{"id": "m-1"}]
    assert "Error in event handler" in caplog.text


def test_row_to_event_data_flattens_orm_rows(make_car):
    car = make_car(license_plate="EVT-1")
    data = row_to_event_data(car)

    assert data["license_plate"] == "EVT-1"
    assert data["status"] == CarStatus.AVAILABLE.value
    assert isinstance(data["created_at"], str)
    assert "_sa_instance_state" not in data


# ---------------------------------------------------------------------------
# Decorators
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_publish_event_adds_actor(db_session):
    received = []

    async def listener(data):
        received.append(data)

    @publish_event(EventType.CAR_REQUEST_APPROVED)
    async def handler(*, current_user):
        return {"id": "req-9", "created_by_id": "u-1"}

    event_bus.subscribe(EventType.CAR_REQUEST_APPROVED, listener)
    try:
        await handler(current_user=SimpleNamespace(id="admin-1"))
    finally:
        event_bus.unsubscribe(EventType.CAR_REQUEST_APPROVED, listener)

    [data] = [d for d in received if d["id"] == "req-9"]
    assert data["actor_id"] == "admin-1"
    assert data["event_type"] == EventType.CAR_REQUEST_APPROVED


@pytest.mark.asyncio
async def test_audited_writes_row_for_returned_entity(db_session, garage_user):
    @audited(AuditAction.CAR_UPDATED, "Car", details=lambda row: {"plate": row.license_plate})
    async def handler(*, db, current_user):
        return SimpleNamespace(id="car-7", license_plate="AUD-1")

    await handler(db=db_session, current_user=garage_user)

    [row] = AuditService(db_session).by_entity("Car", "car-7")
    assert row.action == "CAR_UPDATED"
    assert row.details == {"plate": "AUD-1"}


@pytest.mark.asyncio
async def test_audit_failure_never_breaks_the_handler(db_session, garage_user, caplog):
    @audited(AuditAction.CAR_DELETED, "Car")
    async def handler(*, db, current_user):
        return SimpleNamespace(id="car-8")

    with patch.object(AuditService, "log", side_effect=RuntimeError("disk full")):
        with caplog.at_level(logging.ERROR):
            result = await handler(db=db_session, current_user=garage_user)

    assert result.id == "car-8"
    assert "Failed to write audit log" in caplog.text
    assert AuditService(db_session).by_entity("Car", "car-8") == []


def test_notification_handlers_register_once_and_unregister():
    bus = EventBus()

    register_notification_handlers(bus)
    register_notification_handlers(bus)
    assert bus.subscriber_count(EventType.CAR_REQUEST_CREATED) == 1
    assert bus.subscriber_count(EventType.MAINTENANCE_STARTED) == 0

    unregister_notification_handlers(bus)
    assert bus.subscriber_count(EventType.CAR_REQUEST_CREATED) == 0
