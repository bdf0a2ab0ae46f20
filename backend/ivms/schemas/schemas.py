from datetime import datetime
from typing import Any
from typing import ClassVar
from typing import Dict
from typing import List
from typing import Optional
from typing import Tuple

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

from ivms.models.enums import CarRequestStatus
from ivms.models.enums import CarStatus
from ivms.models.enums import CarType
from ivms.models.enums import Department
from ivms.models.enums import MaintenanceStatus
from ivms.models.enums import MaintenanceType
from ivms.models.enums import NotificationType
from ivms.models.enums import Role
from ivms.models.enums import TrackingMode


class PatchModel(BaseModel):
    """Partial update payload.

    ``changes()`` returns only the fields the client sent.  An explicit
    ``null`` is kept for columns listed in ``nullable_fields`` (it clears the
    value) and dropped everywhere else.
    """

    nullable_fields: ClassVar[Tuple[str, ...]] = ()

    def changes(self) -> Dict[str, Any]:
        data = self.model_dump(exclude_unset=True)
        return {k: v for k, v in data.items() if v is not None or k in self.nullable_fields}


# ------------------------------------------------------------
# Users & authentication
# ------------------------------------------------------------


class UserBrief(BaseModel):
    id: str
    full_name: str
    department: Department

    model_config = ConfigDict(from_attributes=True)


class UserOut(BaseModel):
    id: str
    username: str
    full_name: str
    department: Department
    role: Role
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserCreate(BaseModel):
    username: str = Field(min_length=3, max_length=100)
    password: str = Field(min_length=6)
    full_name: str = Field(min_length=1, max_length=200)
    department: Department
    role: Role


class UserUpdate(PatchModel):
    username: Optional[str] = Field(default=None, min_length=3, max_length=100)
    full_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    department: Optional[Department] = None
    role: Optional[Role] = None
    is_active: Optional[bool] = None


class LoginRequest(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserOut


class TokenClaims(BaseModel):
    sub: str = Field(min_length=1)
    username: str
    department: Department
    role: Role
    exp: int


class ResetPasswordRequest(BaseModel):
    user_id: str
    new_password: str = Field(min_length=6)


class MessageOut(BaseModel):
    message: str


# ------------------------------------------------------------
# Rental companies
# ------------------------------------------------------------


class RentalCompanyCreate(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    is_active: Optional[bool] = None


class RentalCompanyUpdate(PatchModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    is_active: Optional[bool] = None


class RentalCompanyOut(BaseModel):
    id: str
    name: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RentalCompanyOption(BaseModel):
    id: str
    name: str

    model_config = ConfigDict(from_attributes=True)


# ------------------------------------------------------------
# Cars
# ------------------------------------------------------------


class CarCreate(BaseModel):
    model: str = Field(min_length=1, max_length=100)
    type: CarType
    year: int = Field(ge=1900, le=2100)
    color: str = Field(min_length=1, max_length=50)
    license_plate: str = Field(min_length=1, max_length=32)
    vin: str = Field(min_length=1, max_length=32)
    mileage: int = Field(default=0, ge=0)
    warranty_expiry: Optional[datetime] = None
    maintenance_interval_months: Optional[int] = Field(default=None, ge=1)
    next_maintenance_date: Optional[datetime] = None


class CarUpdate(PatchModel):
    nullable_fields: ClassVar[Tuple[str, ...]] = (
        "warranty_expiry",
        "maintenance_interval_months",
        "next_maintenance_date",
    )

    model: Optional[str] = Field(default=None, min_length=1, max_length=100)
    type: Optional[CarType] = None
    year: Optional[int] = Field(default=None, ge=1900, le=2100)
    color: Optional[str] = Field(default=None, min_length=1, max_length=50)
    license_plate: Optional[str] = Field(default=None, min_length=1, max_length=32)
    vin: Optional[str] = Field(default=None, min_length=1, max_length=32)
    mileage: Optional[int] = Field(default=None, ge=0)
    status: Optional[CarStatus] = None
    warranty_expiry: Optional[datetime] = None
    maintenance_interval_months: Optional[int] = Field(default=None, ge=1)
    next_maintenance_date: Optional[datetime] = None


class CarStatusUpdate(BaseModel):
    status: CarStatus


class CarOut(BaseModel):
    id: str
    model: str
    type: CarType
    year: int
    color: str
    license_plate: str
    vin: str
    mileage: int
    status: CarStatus
    warranty_expiry: Optional[datetime] = None
    maintenance_interval_months: Optional[int] = None
    next_maintenance_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CarBrief(BaseModel):
    id: str
    model: str
    license_plate: str
    type: CarType

    model_config = ConfigDict(from_attributes=True)


class CarOption(BaseModel):
    id: str
    license_plate: str


class CarAvailability(BaseModel):
    available: bool


class CarRequestSummary(BaseModel):
    id: str
    status: CarRequestStatus
    departure_datetime: datetime
    return_datetime: datetime

    model_config = ConfigDict(from_attributes=True)


class MaintenanceSummary(BaseModel):
    id: str
    status: MaintenanceStatus
    description: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CarDetail(CarOut):
    car_requests: List[CarRequestSummary] = []
    maintenance_requests: List[MaintenanceSummary] = []


# ------------------------------------------------------------
# Parts
# ------------------------------------------------------------


class PartCreate(BaseModel):
    name: str = Field(min_length=2, max_length=200)
    car_type: CarType
    car_model: str = Field(min_length=2, max_length=100)
    tracking_mode: TrackingMode
    quantity: Optional[int] = Field(default=None, ge=0)
    serial_number: Optional[str] = Field(default=None, min_length=1, max_length=100)


class PartUpdate(PatchModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=200)
    car_model: Optional[str] = Field(default=None, min_length=2, max_length=100)
    quantity: Optional[int] = None


class PartAdjust(BaseModel):
    adjustment: int


class PartOut(BaseModel):
    id: str
    name: str
    car_type: CarType
    car_model: str
    tracking_mode: TrackingMode
    quantity: int
    serial_number: Optional[str] = None
    is_deleted: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ------------------------------------------------------------
# Maintenance
# ------------------------------------------------------------


class MaintenanceCreate(BaseModel):
    car_id: str
    description: str = Field(min_length=10)
    notes: Optional[str] = None


class MaintenanceTriage(BaseModel):
    maintenance_type: MaintenanceType
    external_vendor: Optional[str] = None
    estimated_cost: Optional[float] = Field(default=None, ge=0)


class MaintenanceComplete(BaseModel):
    external_cost: Optional[float] = Field(default=None, ge=0)
    completion_notes: Optional[str] = None


class MaintenanceOut(BaseModel):
    id: str
    car_id: str
    description: str
    notes: Optional[str] = None
    status: MaintenanceStatus
    maintenance_type: Optional[MaintenanceType] = None
    external_vendor: Optional[str] = None
    estimated_cost: Optional[float] = None
    external_cost: Optional[float] = None
    completion_notes: Optional[str] = None
    created_by_id: str
    triaged_by_id: Optional[str] = None
    approved_by_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    car: Optional[CarBrief] = None
    created_by: Optional[UserBrief] = None
    triaged_by: Optional[UserBrief] = None
    approved_by: Optional[UserBrief] = None

    model_config = ConfigDict(from_attributes=True)


class MaintenanceSchedule(BaseModel):
    car: CarBrief
    next_maintenance_date: Optional[datetime] = None
    maintenance_interval_months: Optional[int] = None
    last_maintenance: Optional[MaintenanceOut] = None
    maintenance_history: List[MaintenanceOut] = []


class MaintenanceDue(BaseModel):
    id: str
    model: str
    license_plate: str
    next_maintenance_date: datetime
    days_until_due: int


# ------------------------------------------------------------
# Car requests
# ------------------------------------------------------------


class CarRequestCreate(BaseModel):
    requested_car_type: CarType
    departure_location: str = Field(min_length=1, max_length=200)
    destination: str = Field(min_length=1, max_length=200)
    departure_datetime: datetime
    return_datetime: datetime
    description: Optional[str] = None
    requested_car_id: Optional[str] = None


class CarRequestUpdate(PatchModel):
    nullable_fields: ClassVar[Tuple[str, ...]] = ("description", "requested_car_id")

    requested_car_type: Optional[CarType] = None
    departure_location: Optional[str] = Field(default=None, min_length=1, max_length=200)
    destination: Optional[str] = Field(default=None, min_length=1, max_length=200)
    departure_datetime: Optional[datetime] = None
    return_datetime: Optional[datetime] = None
    description: Optional[str] = None
    requested_car_id: Optional[str] = None


class CarAssign(BaseModel):
    is_rental: bool = False
    car_id: Optional[str] = None
    rental_company_id: Optional[str] = None


class CarReturn(BaseModel):
    return_condition_notes: Optional[str] = None
    current_mileage: Optional[int] = Field(default=None, ge=0)


class CarRequestOut(BaseModel):
    id: str
    requested_car_type: CarType
    requested_car_id: Optional[str] = None
    departure_location: str
    destination: str
    departure_datetime: datetime
    return_datetime: datetime
    description: Optional[str] = None
    status: CarRequestStatus
    is_rental: bool
    rental_company_id: Optional[str] = None
    return_condition_notes: Optional[str] = None
    created_by_id: str
    assigned_by_id: Optional[str] = None
    approved_by_id: Optional[str] = None
    cancelled_by_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    requested_car: Optional[CarBrief] = None
    rental_company: Optional[RentalCompanyOption] = None
    created_by: Optional[UserBrief] = None
    assigned_by: Optional[UserBrief] = None
    approved_by: Optional[UserBrief] = None

    model_config = ConfigDict(from_attributes=True)


# ------------------------------------------------------------
# Audit log
# ------------------------------------------------------------


class AuditLogOut(BaseModel):
    id: str
    action: str
    entity_type: str
    entity_id: str
    performed_by_id: str
    department: Department
    details: Optional[Dict[str, Any]] = None
    timestamp: datetime
    performed_by: Optional[UserBrief] = None

    model_config = ConfigDict(from_attributes=True)


class AuditStat(BaseModel):
    action: str
    count: int


# ------------------------------------------------------------
# Notifications
# ------------------------------------------------------------


class NotificationOut(BaseModel):
    id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UnreadCount(BaseModel):
    count: int


class FleetScanOut(BaseModel):
    approaching: int
    overdue: int
    warranty: int
