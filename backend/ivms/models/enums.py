"""Shared *Enum* definitions for SQLAlchemy & Pydantic models.

The Enums inherit from ``str`` so that:

* JSON serialisation remains unchanged (values render as plain strings).
* Equality checks against raw literals (``role == "SUPER_ADMIN"``) keep
  working in tests and policy code.
"""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    OPERATOR = "OPERATOR"


class Department(str, Enum):
    ADMIN = "ADMIN"
    OPERATION = "OPERATION"
    GARAGE = "GARAGE"
    MAINTENANCE = "MAINTENANCE"


class CarType(str, Enum):
    SEDAN = "SEDAN"
    SUV = "SUV"
    VAN = "VAN"
    PICKUP = "PICKUP"
    BUS = "BUS"


class CarStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    ASSIGNED = "ASSIGNED"
    IN_TRANSIT = "IN_TRANSIT"
    UNDER_MAINTENANCE = "UNDER_MAINTENANCE"
    DELETED = "DELETED"


class CarRequestStatus(str, Enum):
    PENDING = "PENDING"
    ASSIGNED = "ASSIGNED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    IN_TRANSIT = "IN_TRANSIT"
    RETURNED = "RETURNED"
    CANCELLED = "CANCELLED"


class MaintenanceStatus(str, Enum):
    PENDING = "PENDING"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class MaintenanceType(str, Enum):
    INTERNAL = "INTERNAL"
    EXTERNAL = "EXTERNAL"


class TrackingMode(str, Enum):
    QUANTITY = "QUANTITY"
    SERIAL_NUMBER = "SERIAL_NUMBER"


class NotificationType(str, Enum):
    CAR_REQUEST_CREATED = "CAR_REQUEST_CREATED"
    CAR_REQUEST_ASSIGNED = "CAR_REQUEST_ASSIGNED"
    CAR_REQUEST_APPROVED = "CAR_REQUEST_APPROVED"
    CAR_REQUEST_REJECTED = "CAR_REQUEST_REJECTED"
    CAR_IN_TRANSIT = "CAR_IN_TRANSIT"
    CAR_RETURNED = "CAR_RETURNED"
    MAINTENANCE_REQUEST_CREATED = "MAINTENANCE_REQUEST_CREATED"
    MAINTENANCE_TRIAGED = "MAINTENANCE_TRIAGED"
    MAINTENANCE_APPROVED = "MAINTENANCE_APPROVED"
    MAINTENANCE_REJECTED = "MAINTENANCE_REJECTED"
    MAINTENANCE_COMPLETED = "MAINTENANCE_COMPLETED"
    SCHEDULED_MAINTENANCE_APPROACHING = "SCHEDULED_MAINTENANCE_APPROACHING"
    SCHEDULED_MAINTENANCE_OVERDUE = "SCHEDULED_MAINTENANCE_OVERDUE"
    WARRANTY_EXPIRING = "WARRANTY_EXPIRING"


class AuditAction(str, Enum):
    # Car requests
    CAR_REQUEST_CREATED = "CAR_REQUEST_CREATED"
    CAR_REQUEST_UPDATED = "CAR_REQUEST_UPDATED"
    CAR_REQUEST_ASSIGNED = "CAR_REQUEST_ASSIGNED"
    CAR_REQUEST_APPROVED = "CAR_REQUEST_APPROVED"
    CAR_REQUEST_REJECTED = "CAR_REQUEST_REJECTED"
    CAR_REQUEST_CANCELLED = "CAR_REQUEST_CANCELLED"
    CAR_IN_TRANSIT = "CAR_IN_TRANSIT"
    CAR_RETURNED = "CAR_RETURNED"

    # Maintenance
    MAINTENANCE_CREATED = "MAINTENANCE_CREATED"
    MAINTENANCE_TRIAGED = "MAINTENANCE_TRIAGED"
    MAINTENANCE_APPROVED = "MAINTENANCE_APPROVED"
    MAINTENANCE_REJECTED = "MAINTENANCE_REJECTED"
    MAINTENANCE_STARTED = "MAINTENANCE_STARTED"
    MAINTENANCE_COMPLETED = "MAINTENANCE_COMPLETED"

    # Inventory
    CAR_ADDED = "CAR_ADDED"
    CAR_UPDATED = "CAR_UPDATED"
    CAR_STATUS_CHANGED = "CAR_STATUS_CHANGED"
    CAR_DELETED = "CAR_DELETED"
    PART_CREATED = "PART_CREATED"
    PART_UPDATED = "PART_UPDATED"
    PART_QUANTITY_ADJUSTED = "PART_QUANTITY_ADJUSTED"
    PART_DELETED = "PART_DELETED"
    RENTAL_COMPANY_CREATED = "RENTAL_COMPANY_CREATED"
    RENTAL_COMPANY_UPDATED = "RENTAL_COMPANY_UPDATED"
    RENTAL_COMPANY_DELETED = "RENTAL_COMPANY_DELETED"

    # Users
    USER_CREATED = "USER_CREATED"
    USER_UPDATED = "USER_UPDATED"
    USER_DEACTIVATED = "USER_DEACTIVATED"
    USER_ACTIVATED = "USER_ACTIVATED"
    PASSWORD_RESET = "PASSWORD_RESET"


# Statuses that keep a car "busy" and block deletion / double booking.
ACTIVE_CAR_REQUEST_STATUSES = (
    CarRequestStatus.PENDING,
    CarRequestStatus.ASSIGNED,
    CarRequestStatus.APPROVED,
    CarRequestStatus.IN_TRANSIT,
)

ACTIVE_MAINTENANCE_STATUSES = (
    MaintenanceStatus.PENDING,
    MaintenanceStatus.PENDING_APPROVAL,
    MaintenanceStatus.APPROVED,
    MaintenanceStatus.IN_PROGRESS,
)


__all__ = [
    "Role",
    "Department",
    "CarType",
    "CarStatus",
    "CarRequestStatus",
    "MaintenanceStatus",
    "MaintenanceType",
    "TrackingMode",
    "NotificationType",
    "AuditAction",
    "ACTIVE_CAR_REQUEST_STATUSES",
    "ACTIVE_MAINTENANCE_STATUSES",
]
