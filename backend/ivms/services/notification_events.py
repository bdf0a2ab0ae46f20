"""Event-bus subscribers that turn workflow events into notifications.

Each rule names who hears about an event: the *requester* (creator of the
car/maintenance request) and/or every active member of some departments.
Handlers run after the request transaction committed and use their own
:func:`~ivms.database.db_session`.
"""

import logging
from dataclasses import dataclass
from typing import Any
from typing import Dict
from typing import Optional
from typing import Tuple

from sqlalchemy.orm import Session

from ivms.database import db_session
from ivms.events.event_bus import EventBus
from ivms.events.event_bus import EventType
from ivms.events.event_bus import event_bus
from ivms.models.enums import Department
from ivms.models.enums import NotificationType
from ivms.models.models import Car
from ivms.models.models import User
from ivms.services.notifications import NotificationService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FanoutRule:
    notification_type: NotificationType
    entity_type: str
    notify_requester: bool = False
    departments: Tuple[Department, ...] = ()
    # Department members get this wording instead of the requester template.
    department_title: Optional[str] = None
    department_message: Optional[str] = None


CAR_REQUEST = "CarRequest"
MAINTENANCE = "MaintenanceRequest"

FANOUT_RULES: Dict[EventType, FanoutRule] = {
    EventType.CAR_REQUEST_CREATED: FanoutRule(
        NotificationType.CAR_REQUEST_CREATED, CAR_REQUEST, departments=(Department.GARAGE,)
    ),
    EventType.CAR_REQUEST_ASSIGNED: FanoutRule(
        NotificationType.CAR_REQUEST_ASSIGNED,
        CAR_REQUEST,
        notify_requester=True,
        departments=(Department.ADMIN,),
        department_title="Car Request Ready for Approval",
        department_message="A car has been assigned to a request and is pending approval.",
    ),
    EventType.CAR_REQUEST_APPROVED: FanoutRule(
        NotificationType.CAR_REQUEST_APPROVED, CAR_REQUEST, notify_requester=True
    ),
    EventType.CAR_REQUEST_REJECTED: FanoutRule(
        NotificationType.CAR_REQUEST_REJECTED, CAR_REQUEST, notify_requester=True
    ),
    EventType.CAR_IN_TRANSIT: FanoutRule(
        NotificationType.CAR_IN_TRANSIT, CAR_REQUEST, departments=(Department.GARAGE,)
    ),
    EventType.CAR_RETURNED: FanoutRule(NotificationType.CAR_RETURNED, CAR_REQUEST, notify_requester=True),
    EventType.MAINTENANCE_CREATED: FanoutRule(
        NotificationType.MAINTENANCE_REQUEST_CREATED, MAINTENANCE, departments=(Department.MAINTENANCE,)
    ),
    EventType.MAINTENANCE_TRIAGED: FanoutRule(
        NotificationType.MAINTENANCE_TRIAGED,
        MAINTENANCE,
        notify_requester=True,
        departments=(Department.ADMIN,),
        department_title="Maintenance Request Pending Approval",
        department_message="A maintenance request has been triaged and is pending approval.",
    ),
    EventType.MAINTENANCE_APPROVED: FanoutRule(
        NotificationType.MAINTENANCE_APPROVED,
        MAINTENANCE,
        notify_requester=True,
        departments=(Department.MAINTENANCE,),
        department_title="Maintenance Request Approved",
        department_message="A maintenance request has been approved and is ready to start.",
    ),
    EventType.MAINTENANCE_REJECTED: FanoutRule(
        NotificationType.MAINTENANCE_REJECTED, MAINTENANCE, notify_requester=True
    ),
    EventType.MAINTENANCE_COMPLETED: FanoutRule(
        NotificationType.MAINTENANCE_COMPLETED,
        MAINTENANCE,
        notify_requester=True,
        departments=(Department.GARAGE,),
    ),
}


def _full_name(db: Session, user_id: Optional[str]) -> Optional[str]:
    if not user_id:
        return None
    user = db.query(User).filter(User.id == user_id).first()
    return user.full_name if user else None


def build_context(db: Session, event_type: EventType, data: Dict[str, Any]) -> Dict[str, Any]:
    """Collect template variables for *data* (the flattened request row)."""

    actor = _full_name(db, data.get("actor_id"))
    car_id = data.get("requested_car_id") or data.get("car_id")
    car = db.query(Car).filter(Car.id == car_id).first() if car_id else None

    context: Dict[str, Any] = {
        "requested_by": _full_name(db, data.get("created_by_id")),
        "destination": data.get("destination"),
        "car_model": car.model if car else None,
        "license_plate": car.license_plate if car else None,
        "maintenance_description": data.get("description"),
        "maintenance_type": data.get("maintenance_type"),
    }
    if event_type in (EventType.CAR_REQUEST_ASSIGNED,):
        context["assigned_by"] = actor
    elif event_type in (EventType.CAR_REQUEST_APPROVED, EventType.MAINTENANCE_APPROVED):
        context["approved_by"] = actor
    elif event_type in (EventType.CAR_REQUEST_REJECTED, EventType.MAINTENANCE_REJECTED):
        context["rejected_by"] = actor
    return context


def dispatch(db: Session, event_type: EventType, data: Dict[str, Any]) -> int:
    """Write the notifications *event_type* calls for; returns how many."""

    rule = FANOUT_RULES.get(event_type)
    if rule is None:
        return 0

    service = NotificationService(db)
    context = build_context(db, event_type, data)
    entity_id = data.get("id")
    written = 0

    requester_id = data.get("created_by_id")
    if rule.notify_requester and requester_id:
        service.notify_user(requester_id, rule.notification_type, context, rule.entity_type, entity_id)
        written += 1

    if rule.departments:
        written += len(
            service.notify_departments(
                rule.departments,
                rule.notification_type,
                context,
                rule.entity_type,
                entity_id,
                title=rule.department_title,
                message=rule.department_message,
            )
        )
    return written


def _make_handler(event_type: EventType):
    async def handler(data: Dict[str, Any]) -> None:
        with db_session() as db:
            count = dispatch(db, event_type, data)
        logger.debug("%s produced %d notification(s)", event_type.value, count)

    handler.__name__ = f"notify_{event_type.value}"
    return handler


_HANDLERS = {event_type: _make_handler(event_type) for event_type in FANOUT_RULES}


def register_notification_handlers(bus: EventBus = event_bus) -> None:
    """Subscribe the fan-out handlers (idempotent)."""

    for event_type, handler in _HANDLERS.items():
        bus.subscribe(event_type, handler)


def unregister_notification_handlers(bus: EventBus = event_bus) -> None:
    for event_type, handler in _HANDLERS.items():
        bus.unsubscribe(event_type, handler)
