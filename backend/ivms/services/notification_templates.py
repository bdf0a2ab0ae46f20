"""Title/message templates keyed by :class:`NotificationType`.

Every template reads optional keys from a context mapping and falls back to
neutral wording when a key is missing, so callers can pass whatever they
know about the entity.
"""

from typing import Any
from typing import Callable
from typing import Dict
from typing import Mapping
from typing import Tuple

from ivms.models.enums import NotificationType

Context = Mapping[str, Any]


def _by(ctx: Context, key: str) -> str:
    return f" by {ctx[key]}" if ctx.get(key) else ""


def _car_label(ctx: Context, default: str) -> str:
    label = ctx.get("car_model") or default
    if ctx.get("license_plate"):
        label += f" ({ctx['license_plate']})"
    return label


def _in_transit(ctx: Context) -> str:
    car = f"({ctx['car_model']}) " if ctx.get("car_model") else ""
    return f"The car {car}is now in transit to {ctx.get('destination') or 'the destination'}."


def _returned(ctx: Context) -> str:
    car = f"({ctx['car_model']}) " if ctx.get("car_model") else ""
    return f"The car {car}has been returned."


def _approaching(ctx: Context) -> str:
    when = f" on {ctx['due_date']}" if ctx.get("due_date") else " soon"
    return f"{_car_label(ctx, 'A car')} is due for maintenance{when}."


def _warranty(ctx: Context) -> str:
    when = f" in {ctx['days_until_due']} days" if ctx.get("days_until_due") else " soon"
    return f"Warranty for {_car_label(ctx, 'a car')} expires{when}."


TEMPLATES: Dict[NotificationType, Tuple[str, Callable[[Context], str]]] = {
    NotificationType.CAR_REQUEST_CREATED: (
        "New Car Request",
        lambda ctx: f"{ctx.get('requested_by') or 'A user'} has submitted a car request for "
        f"{ctx.get('destination') or 'a destination'}.",
    ),
    NotificationType.CAR_REQUEST_ASSIGNED: (
        "Car Assigned to Request",
        lambda ctx: f"A {ctx.get('car_model') or 'car'} has been assigned to your request by "
        f"{ctx.get('assigned_by') or 'the garage'}.",
    ),
    NotificationType.CAR_REQUEST_APPROVED: (
        "Car Request Approved",
        lambda ctx: f"Your car request has been approved{_by(ctx, 'approved_by')}.",
    ),
    NotificationType.CAR_REQUEST_REJECTED: (
        "Car Request Rejected",
        lambda ctx: f"Your car request has been rejected{_by(ctx, 'rejected_by')}.",
    ),
    NotificationType.CAR_IN_TRANSIT: ("Car In Transit", _in_transit),
    NotificationType.CAR_RETURNED: ("Car Returned", _returned),
    NotificationType.MAINTENANCE_REQUEST_CREATED: (
        "New Maintenance Request",
        lambda ctx: "A maintenance request has been created: "
        f"{ctx.get('maintenance_description') or 'No description'}.",
    ),
    NotificationType.MAINTENANCE_TRIAGED: (
        "Maintenance Request Triaged",
        lambda ctx: "Maintenance request has been triaged as "
        f"{(ctx.get('maintenance_type') or 'internal').lower()} maintenance.",
    ),
    NotificationType.MAINTENANCE_APPROVED: (
        "Maintenance Request Approved",
        lambda ctx: f"Maintenance request has been approved{_by(ctx, 'approved_by')}.",
    ),
    NotificationType.MAINTENANCE_REJECTED: (
        "Maintenance Request Rejected",
        lambda ctx: f"Maintenance request has been rejected{_by(ctx, 'rejected_by')}.",
    ),
    NotificationType.MAINTENANCE_COMPLETED: (
        "Maintenance Completed",
        lambda ctx: f"Maintenance for {ctx.get('car_model') or 'the car'} has been completed.",
    ),
    NotificationType.SCHEDULED_MAINTENANCE_APPROACHING: ("Scheduled Maintenance Approaching", _approaching),
    NotificationType.SCHEDULED_MAINTENANCE_OVERDUE: (
        "Scheduled Maintenance Overdue",
        lambda ctx: f"{_car_label(ctx, 'A car')} is overdue for scheduled maintenance.",
    ),
    NotificationType.WARRANTY_EXPIRING: ("Warranty Expiring Soon", _warranty),
}

FALLBACK = ("Notification", "You have a new notification.")


def render(notification_type: NotificationType, context: Context = None) -> Tuple[str, str]:
    """Return ``(title, message)`` for *notification_type*."""

    entry = TEMPLATES.get(notification_type)
    if entry is None:
        return FALLBACK
    title, message = entry
    return title, message(context or {})
