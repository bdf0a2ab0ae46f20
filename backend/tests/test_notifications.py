from datetime import timedelta

import pytest

from ivms.events.event_bus import EventType
from ivms.exceptions import NotFoundError
from ivms.models.enums import Department
from ivms.models.enums import NotificationType
from ivms.services.notification_events import dispatch
from ivms.services.notification_templates import FALLBACK
from ivms.services.notification_templates import render
from ivms.services.notifications import NotificationService
from ivms.utils.time import utc_now_naive


@pytest.fixture
def inbox(db_session):
    return NotificationService(db_session)


def titles(inbox, user):
    return [n.title for n in inbox.list_for_user(user.id)]


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


def test_templates_fill_context_and_fall_back():
    title, message = render(NotificationType.CAR_REQUEST_CREATED, {"requested_by": "Olive", "destination": "Port"})
    assert title == "New Car Request"
    assert message == "Olive has submitted a car request for Port."

    assert render(NotificationType.CAR_REQUEST_CREATED)[1] == "A user has submitted a car request for a destination."
    assert render(NotificationType.CAR_REQUEST_APPROVED, {"approved_by": "Sam"})[1].endswith("approved by Sam.")
    assert render("SOMETHING_ELSE") == FALLBACK


# ---------------------------------------------------------------------------
# Fan-out rules
# ---------------------------------------------------------------------------


def test_created_request_goes_to_active_garage_staff(db_session, inbox, operator, garage_user, make_user):
    asleep = make_user(Department.GARAGE, is_active=False)

    written = dispatch(
        db_session,
        EventType.CAR_REQUEST_CREATED,
        {"id": "req-1", "created_by_id": operator.id, "destination": "Airport"},
    )

    assert written == 1
    [note] = inbox.list_for_user(garage_user.id)
    assert note.message == "Olive Operator has submitted a car request for Airport."
    assert note.entity_type == "CarRequest"
    assert note.entity_id == "req-1"
    assert inbox.list_for_user(asleep.id) == []
    assert inbox.list_for_user(operator.id) == []


def test_assignment_notifies_requester_and_admins(db_session, inbox, operator, garage_user, super_admin, make_car):
    car = make_car(model="Hilux")
    data = {"id": "req-1", "created_by_id": operator.id, "requested_car_id": car.id, "actor_id": garage_user.id}

    assert dispatch(db_session, EventType.CAR_REQUEST_ASSIGNED, data) == 2

    [mine] = inbox.list_for_user(operator.id)
    assert mine.message == "A Hilux has been assigned to your request by Gus Garage."
    assert titles(inbox, super_admin) == ["Car Request Ready for Approval"]
    assert inbox.list_for_user(garage_user.id) == []


def test_events_without_rule_write_nothing(db_session, operator):
    assert dispatch(db_session, EventType.MAINTENANCE_STARTED, {"id": "m-1", "created_by_id": operator.id}) == 0


def test_api_workflow_fans_out(
    client, inbox, trip_payload, operator, garage_user, maintenance_user, super_admin, as_user, make_car
):
    car = make_car()

    as_user(operator)
    request_id = client.post("/api/car-requests", json=trip_payload()).json()["id"]
    assert titles(inbox, garage_user) == ["New Car Request"]

    as_user(garage_user)
    client.post(f"/api/car-requests/{request_id}/assign", json={"car_id": car.id})
    assert titles(inbox, operator) == ["Car Assigned to Request"]
    assert titles(inbox, super_admin) == ["Car Request Ready for Approval"]

    resp = client.post("/api/maintenance", json={"car_id": make_car().id, "description": "Check engine light on"})
    assert resp.status_code == 201
    assert titles(inbox, maintenance_user) == ["New Maintenance Request"]


# ---------------------------------------------------------------------------
# Inbox
# ---------------------------------------------------------------------------


def test_inbox_is_owner_scoped(inbox, operator, garage_user, db_session):
    note = inbox.notify_user(operator.id, NotificationType.CAR_RETURNED)
    db_session.commit()

    with pytest.raises(NotFoundError):
        inbox.find_one(note.id, garage_user.id)
    with pytest.raises(NotFoundError):
        inbox.mark_read(note.id, garage_user.id)

    assert inbox.unread_count(operator.id) == 1
    assert inbox.mark_read(note.id, operator.id).is_read is True
    assert inbox.unread_count(operator.id) == 0


def test_inbox_api(client, inbox, operator, garage_user, as_user, db_session):
    first = inbox.notify_user(operator.id, NotificationType.CAR_REQUEST_APPROVED)
    inbox.notify_user(operator.id, NotificationType.CAR_RETURNED)
    foreign = inbox.notify_user(garage_user.id, NotificationType.CAR_IN_TRANSIT)
    db_session.commit()

    as_user(operator)
    assert client.get("/api/notifications/unread-count").json() == {"count": 2}
    assert client.get(f"/api/notifications/{foreign.id}").status_code == 404

    resp = client.patch(f"/api/notifications/{first.id}/read")
    assert resp.json()["is_read"] is True
    unread = client.get("/api/notifications", params={"is_read": "false"}).json()
    assert [n["type"] for n in unread] == ["CAR_RETURNED"]

    assert client.post("/api/notifications/read-all").json() == {"message": "Marked 1 notification(s) as read"}
    assert client.get("/api/notifications/unread-count").json() == {"count": 0}

    assert client.delete(f"/api/notifications/{first.id}").status_code == 204
    assert len(client.get("/api/notifications").json()) == 1
    assert client.delete(f"/api/notifications/{foreign.id}").status_code == 404


# ---------------------------------------------------------------------------
# Fleet scan
# ---------------------------------------------------------------------------


def test_fleet_scan(inbox, make_car, garage_user, maintenance_user, super_admin):
    now = utc_now_naive()
    make_car(license_plate="DUE-1", next_maintenance_date=now + timedelta(days=5))
    make_car(license_plate="LATE-1", next_maintenance_date=now - timedelta(days=2))
    make_car(license_plate="WAR-1", warranty_expiry=now + timedelta(days=10))
    make_car(license_plate="FINE-1", next_maintenance_date=now + timedelta(days=200))

    assert inbox.scan_fleet(window_days=30) == {"approaching": 1, "overdue": 1, "warranty": 1}

    assert sorted(titles(inbox, garage_user)) == [
        "Scheduled Maintenance Approaching",
        "Scheduled Maintenance Overdue",
        "Warranty Expiring Soon",
    ]
    assert sorted(titles(inbox, maintenance_user)) == [
        "Scheduled Maintenance Approaching",
        "Scheduled Maintenance Overdue",
    ]
    assert sorted(titles(inbox, super_admin)) == ["Scheduled Maintenance Overdue", "Warranty Expiring Soon"]

    overdue = next(
        n for n in inbox.list_for_user(garage_user.id) if n.type == NotificationType.SCHEDULED_MAINTENANCE_OVERDUE
    )
    assert overdue.message == "Corolla (LATE-1) is overdue for scheduled maintenance."


def test_scan_endpoint_is_super_admin_only(client, garage_user, super_admin, as_user):
    as_user(garage_user)
    assert client.post("/api/notifications/scan").status_code == 403

    as_user(super_admin)
    assert client.post("/api/notifications/scan", params={"days": 7}).json() == {
        "approaching": 0,
        "overdue": 0,
        "warranty": 0,
    }
