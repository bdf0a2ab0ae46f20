from enum import Enum
from typing import Dict
from typing import Iterable

from ivms.exceptions import BusinessRuleError
from ivms.models.enums import CarRequestStatus
from ivms.models.enums import MaintenanceStatus

MAINTENANCE_TRANSITIONS: Dict[MaintenanceStatus, tuple] = {
    MaintenanceStatus.PENDING: (MaintenanceStatus.PENDING_APPROVAL,),
    MaintenanceStatus.PENDING_APPROVAL: (MaintenanceStatus.APPROVED, MaintenanceStatus.REJECTED),
    MaintenanceStatus.APPROVED: (MaintenanceStatus.IN_PROGRESS,),
    MaintenanceStatus.REJECTED: (),
    MaintenanceStatus.IN_PROGRESS: (MaintenanceStatus.COMPLETED,),
    MaintenanceStatus.COMPLETED: (),
}

CAR_REQUEST_TRANSITIONS: Dict[CarRequestStatus, tuple] = {
    CarRequestStatus.PENDING: (CarRequestStatus.ASSIGNED, CarRequestStatus.CANCELLED),
    CarRequestStatus.ASSIGNED: (CarRequestStatus.APPROVED, CarRequestStatus.REJECTED, CarRequestStatus.CANCELLED),
    CarRequestStatus.APPROVED: (CarRequestStatus.IN_TRANSIT, CarRequestStatus.CANCELLED),
    CarRequestStatus.REJECTED: (),
    CarRequestStatus.IN_TRANSIT: (CarRequestStatus.RETURNED,),
    CarRequestStatus.RETURNED: (),
    CarRequestStatus.CANCELLED: (),
}


def _name(status) -> str:
    return status.value if isinstance(status, Enum) else str(status)


def can_transition(table: Dict, current, target) -> bool:
    allowed: Iterable = table.get(current, ())
    return target in allowed


def ensure_transition(table: Dict, current, target) -> None:
    """Raise :class:`BusinessRuleError` unless *current* -> *target* is allowed."""

    if not can_transition(table, current, target):
        raise BusinessRuleError(f"Cannot transition from {_name(current)} to {_name(target)}")
