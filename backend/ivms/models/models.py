from uuid import uuid4

from sqlalchemy import JSON

# SQLAlchemy core imports
from sqlalchemy import Boolean
from sqlalchemy import Column
from sqlalchemy import DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import Float
from sqlalchemy import ForeignKey
from sqlalchemy import Index
from sqlalchemy import Integer
from sqlalchemy import String
from sqlalchemy import Text
from sqlalchemy import text
from sqlalchemy.orm import relationship

# Local helpers / enums
from ivms.database import Base
from ivms.models.enums import CarRequestStatus
from ivms.models.enums import CarStatus
from ivms.models.enums import CarType
from ivms.models.enums import Department
from ivms.models.enums import MaintenanceStatus
from ivms.models.enums import MaintenanceType
from ivms.models.enums import NotificationType
from ivms.models.enums import Role
from ivms.models.enums import TrackingMode
from ivms.utils.time import utc_now_naive


def _uuid() -> str:
    return str(uuid4())


def _enum(enum_cls, name: str) -> SAEnum:
    # Non-native enums become VARCHAR sized to the longest value.
    return SAEnum(enum_cls, native_enum=False, name=name)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Staff account.

    ``username`` is unique among *active* users only – a deactivated account
    keeps its row (and audit history) while freeing the name.
    """

    __tablename__ = "users"
    __table_args__ = (
        Index(
            "uq_users_active_username",
            "username",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    username = Column(String(100), nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    full_name = Column(String(200), nullable=False)
    department = Column(_enum(Department, "department_enum"), nullable=False)
    role = Column(_enum(Role, "role_enum"), nullable=False, default=Role.OPERATOR)
    is_active = Column(Boolean, default=True, nullable=False)

    # Timestamps -------------------------------------------------------------
    created_at = Column(DateTime, default=utc_now_naive, nullable=False)
    updated_at = Column(DateTime, default=utc_now_naive, onupdate=utc_now_naive, nullable=False)


# ---------------------------------------------------------------------------
# Rental companies
# ---------------------------------------------------------------------------


class RentalCompany(Base):
    __tablename__ = "rental_companies"
    __table_args__ = (
        # At most one *active* row per name; inactive rows may share it.
        Index(
            "uq_rental_companies_active_name",
            "name",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(100), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=utc_now_naive, nullable=False)
    updated_at = Column(DateTime, default=utc_now_naive, onupdate=utc_now_naive, nullable=False)


# ---------------------------------------------------------------------------
# Cars
# ---------------------------------------------------------------------------


class Car(Base):
    __tablename__ = "cars"
    __table_args__ = (
        Index(
            "uq_cars_active_license_plate",
            "license_plate",
            unique=True,
            sqlite_where=text("status != 'DELETED'"),
            postgresql_where=text("status != 'DELETED'"),
        ),
        Index(
            "uq_cars_active_vin",
            "vin",
            unique=True,
            sqlite_where=text("status != 'DELETED'"),
            postgresql_where=text("status != 'DELETED'"),
        ),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    model = Column(String(100), nullable=False)
    type = Column(_enum(CarType, "car_type_enum"), nullable=False)
    year = Column(Integer, nullable=False)
    color = Column(String(50), nullable=False)
    license_plate = Column(String(32), nullable=False, index=True)
    vin = Column(String(32), nullable=False, index=True)
    mileage = Column(Integer, nullable=False, default=0)
    status = Column(_enum(CarStatus, "car_status_enum"), nullable=False, default=CarStatus.AVAILABLE)

    warranty_expiry = Column(DateTime, nullable=True)
    maintenance_interval_months = Column(Integer, nullable=True)
    next_maintenance_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utc_now_naive, nullable=False)
    updated_at = Column(DateTime, default=utc_now_naive, onupdate=utc_now_naive, nullable=False)

    car_requests = relationship(
        "CarRequest",
        back_populates="requested_car",
        order_by="desc(CarRequest.created_at)",
    )
    maintenance_requests = relationship(
        "MaintenanceRequest",
        back_populates="car",
        order_by="desc(MaintenanceRequest.created_at)",
    )


# ---------------------------------------------------------------------------
# Parts inventory
# ---------------------------------------------------------------------------


class Part(Base):
    __tablename__ = "parts"
    __table_args__ = (
        Index(
            "uq_parts_active_serial_number",
            "serial_number",
            unique=True,
            sqlite_where=text("is_deleted = 0"),
            postgresql_where=text("NOT is_deleted"),
        ),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(200), nullable=False)
    car_type = Column(_enum(CarType, "part_car_type_enum"), nullable=False)
    car_model = Column(String(100), nullable=False)
    tracking_mode = Column(_enum(TrackingMode, "tracking_mode_enum"), nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    serial_number = Column(String(100), nullable=True)
    is_deleted = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=utc_now_naive, nullable=False)
    updated_at = Column(DateTime, default=utc_now_naive, onupdate=utc_now_naive, nullable=False)


# ---------------------------------------------------------------------------
# Maintenance requests
# ---------------------------------------------------------------------------


class MaintenanceRequest(Base):
    __tablename__ = "maintenance_requests"

    id = Column(String(36), primary_key=True, default=_uuid)
    car_id = Column(String(36), ForeignKey("cars.id"), nullable=False, index=True)
    description = Column(Text, nullable=False)
    notes = Column(Text, nullable=True)
    status = Column(
        _enum(MaintenanceStatus, "maintenance_status_enum"),
        nullable=False,
        default=MaintenanceStatus.PENDING,
    )
    maintenance_type = Column(_enum(MaintenanceType, "maintenance_type_enum"), nullable=True)
    external_vendor = Column(String(200), nullable=True)
    estimated_cost = Column(Float, nullable=True)
    external_cost = Column(Float, nullable=True)
    completion_notes = Column(Text, nullable=True)

    created_by_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    triaged_by_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    approved_by_id = Column(String(36), ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime, default=utc_now_naive, nullable=False)
    updated_at = Column(DateTime, default=utc_now_naive, onupdate=utc_now_naive, nullable=False)

    car = relationship("Car", back_populates="maintenance_requests")
    created_by = relationship("User", foreign_keys=[created_by_id])
    triaged_by = relationship("User", foreign_keys=[triaged_by_id])
    approved_by = relationship("User", foreign_keys=[approved_by_id])


# ---------------------------------------------------------------------------
# Car requests (trip bookings)
# ---------------------------------------------------------------------------


class CarRequest(Base):
    __tablename__ = "car_requests"

    id = Column(String(36), primary_key=True, default=_uuid)
    requested_car_type = Column(_enum(CarType, "requested_car_type_enum"), nullable=False)
    requested_car_id = Column(String(36), ForeignKey("cars.id"), nullable=True, index=True)
    departure_location = Column(String(200), nullable=False)
    destination = Column(String(200), nullable=False)
    departure_datetime = Column(DateTime, nullable=False)
    return_datetime = Column(DateTime, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(
        _enum(CarRequestStatus, "car_request_status_enum"),
        nullable=False,
        default=CarRequestStatus.PENDING,
    )

    is_rental = Column(Boolean, nullable=False, default=False)
    rental_company_id = Column(String(36), ForeignKey("rental_companies.id"), nullable=True)
    return_condition_notes = Column(Text, nullable=True)

    created_by_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    assigned_by_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    approved_by_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    cancelled_by_id = Column(String(36), ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime, default=utc_now_naive, nullable=False)
    updated_at = Column(DateTime, default=utc_now_naive, onupdate=utc_now_naive, nullable=False)

    requested_car = relationship("Car", back_populates="car_requests")
    rental_company = relationship("RentalCompany")
    created_by = relationship("User", foreign_keys=[created_by_id])
    assigned_by = relationship("User", foreign_keys=[assigned_by_id])
    approved_by = relationship("User", foreign_keys=[approved_by_id])


# ---------------------------------------------------------------------------
# Audit log
# ---------------------------------------------------------------------------


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=_uuid)
    action = Column(String(64), nullable=False, index=True)
    entity_type = Column(String(64), nullable=False)
    entity_id = Column(String(36), nullable=False)
    performed_by_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    department = Column(_enum(Department, "audit_department_enum"), nullable=False)
    details = Column(JSON, nullable=True)
    timestamp = Column(DateTime, default=utc_now_naive, nullable=False, index=True)

    performed_by = relationship("User")

    __table_args__ = (Index("ix_audit_logs_entity", "entity_type", "entity_id"),)


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    type = Column(_enum(NotificationType, "notification_type_enum"), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    entity_type = Column(String(64), nullable=True)
    entity_id = Column(String(36), nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=utc_now_naive, nullable=False)
