import logging
from datetime import datetime
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm import selectinload

from ivms.exceptions import BusinessRuleError
from ivms.exceptions import ConflictError
from ivms.exceptions import NotFoundError
from ivms.models.enums import ACTIVE_CAR_REQUEST_STATUSES
from ivms.models.enums import CarRequestStatus
from ivms.models.enums import CarStatus
from ivms.models.enums import CarType
from ivms.models.models import Car
from ivms.models.models import CarRequest
from ivms.models.models import RentalCompany
from ivms.services.transitions import CAR_REQUEST_TRANSITIONS
from ivms.services.transitions import ensure_transition
from ivms.utils.time import as_naive_utc
from ivms.utils.time import utc_now_naive

logger = logging.getLogger(__name__)

CANCELLABLE_STATUSES = (
    CarRequestStatus.PENDING,
    CarRequestStatus.ASSIGNED,
    CarRequestStatus.APPROVED,
)

# Fields a requester may edit while the request is still PENDING.
EDITABLE_FIELDS = (
    "requested_car_type",
    "departure_location",
    "destination",
    "description",
)


class CarRequestService:
    """Trip booking workflow from request to vehicle return."""

    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return self.db.query(CarRequest).options(
            selectinload(CarRequest.requested_car),
            selectinload(CarRequest.rental_company),
            selectinload(CarRequest.created_by),
            selectinload(CarRequest.assigned_by),
            selectinload(CarRequest.approved_by),
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_all(
        self,
        *,
        status: Optional[CarRequestStatus] = None,
        car_type: Optional[CarType] = None,
        created_by_id: Optional[str] = None,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
    ) -> List[CarRequest]:
        query = self._query()
        if status is not None:
            query = query.filter(CarRequest.status == status)
        if car_type is not None:
            query = query.filter(CarRequest.requested_car_type == car_type)
        if created_by_id is not None:
            query = query.filter(CarRequest.created_by_id == created_by_id)
        if from_date is not None:
            query = query.filter(CarRequest.departure_datetime >= as_naive_utc(from_date))
        if to_date is not None:
            query = query.filter(CarRequest.departure_datetime <= as_naive_utc(to_date))
        return query.order_by(CarRequest.created_at.desc()).all()

    def find_one(self, request_id: str) -> CarRequest:
        row = self._query().filter(CarRequest.id == request_id).first()
        if row is None:
            raise NotFoundError("Car request", request_id)
        return row

    def mine(self, user_id: str) -> List[CarRequest]:
        return self.find_all(created_by_id=user_id)

    def pending(self) -> List[CarRequest]:
        return self._by_status(CarRequestStatus.PENDING)

    def assigned(self) -> List[CarRequest]:
        return self._by_status(CarRequestStatus.ASSIGNED)

    def _by_status(self, status: CarRequestStatus) -> List[CarRequest]:
        return self._query().filter(CarRequest.status == status).order_by(CarRequest.created_at.asc()).all()

    def active_for_car(self, car_id: str, exclude_id: Optional[str] = None) -> List[CarRequest]:
        query = self.db.query(CarRequest).filter(
            CarRequest.requested_car_id == car_id,
            CarRequest.status.in_(ACTIVE_CAR_REQUEST_STATUSES),
        )
        if exclude_id is not None:
            query = query.filter(CarRequest.id != exclude_id)
        return query.all()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _verify_car_available(self, car_id: str, exclude_request_id: Optional[str] = None) -> Car:
        car = self.db.query(Car).filter(Car.id == car_id).first()
        if car is None:
            raise NotFoundError("Car", car_id)
        if car.status != CarStatus.AVAILABLE:
            raise ConflictError(f"Car is not available. Current status: {car.status.value}")
        if self.active_for_car(car_id, exclude_id=exclude_request_id):
            raise ConflictError("Car has an active request and cannot be assigned")
        return car

    def _release_car(self, row: CarRequest) -> None:
        if row.is_rental or row.requested_car is None:
            return
        if row.requested_car.status not in (CarStatus.AVAILABLE, CarStatus.DELETED):
            row.requested_car.status = CarStatus.AVAILABLE

    @staticmethod
    def _require_creator(row: CarRequest, user_id: str, action: str) -> None:
        if row.created_by_id != user_id:
            raise BusinessRuleError(f"Only the request creator can {action}")

    @staticmethod
    def _check_dates(departure: datetime, return_at: datetime) -> None:
        if departure >= return_at:
            raise BusinessRuleError("Return datetime must be after departure datetime")

    def _save(self, row: CarRequest, event: str) -> CarRequest:
        self.db.commit()
        self.db.refresh(row)
        logger.info("Car request %s %s (status=%s)", row.id, event, row.status.value)
        return row

    # ------------------------------------------------------------------
    # Workflow
    # ------------------------------------------------------------------

    def create(self, data: Dict[str, Any], user_id: str) -> CarRequest:
        departure = as_naive_utc(data["departure_datetime"])
        return_at = as_naive_utc(data["return_datetime"])
        self._check_dates(departure, return_at)
        if departure < utc_now_naive():
            raise BusinessRuleError("Departure datetime cannot be in the past")

        if data.get("requested_car_id"):
            self._verify_car_available(data["requested_car_id"])

        row = CarRequest(
            requested_car_type=data["requested_car_type"],
            requested_car_id=data.get("requested_car_id"),
            departure_location=data["departure_location"],
            destination=data["destination"],
            departure_datetime=departure,
            return_datetime=return_at,
            description=data.get("description"),
            status=CarRequestStatus.PENDING,
            created_by_id=user_id,
        )
        self.db.add(row)
        return self._save(row, "created")

    def update(self, request_id: str, data: Dict[str, Any], user_id: str) -> CarRequest:
        row = self.find_one(request_id)
        if row.status != CarRequestStatus.PENDING:
            raise BusinessRuleError("Can only update requests in PENDING status")
        self._require_creator(row, user_id, "update the request")

        for field in EDITABLE_FIELDS:
            if field in data:
                setattr(row, field, data[field])

        if data.get("departure_datetime") or data.get("return_datetime"):
            departure = as_naive_utc(data.get("departure_datetime") or row.departure_datetime)
            return_at = as_naive_utc(data.get("return_datetime") or row.return_datetime)
            self._check_dates(departure, return_at)
            row.departure_datetime = departure
            row.return_datetime = return_at

        if "requested_car_id" in data:
            car_id = data["requested_car_id"]
            if car_id:
                self._verify_car_available(car_id, exclude_request_id=row.id)
            row.requested_car_id = car_id

        return self._save(row, "updated")

    def cancel(self, request_id: str, user_id: str) -> CarRequest:
        row = self.find_one(request_id)
        if row.status not in CANCELLABLE_STATUSES:
            raise BusinessRuleError(f"Cannot cancel request in {row.status.value} status")
        self._require_creator(row, user_id, "cancel the request")

        self._release_car(row)
        row.status = CarRequestStatus.CANCELLED
        row.cancelled_by_id = user_id
        return self._save(row, "cancelled")

    def assign(self, request_id: str, data: Dict[str, Any], user_id: str) -> CarRequest:
        row = self.find_one(request_id)
        ensure_transition(CAR_REQUEST_TRANSITIONS, row.status, CarRequestStatus.ASSIGNED)

        if data.get("is_rental"):
            company_id = data.get("rental_company_id")
            if not company_id:
                raise BusinessRuleError("Rental company ID is required for rental assignments")
            company = self.db.query(RentalCompany).filter(RentalCompany.id == company_id).first()
            if company is None or not company.is_active:
                raise NotFoundError("Rental company", company_id, message="Rental company not found or inactive")

            row.is_rental = True
            row.rental_company_id = company.id
            row.requested_car_id = None
        else:
            car_id = data.get("car_id")
            if not car_id:
                raise BusinessRuleError("Car ID is required for company car assignments")
            car = self._verify_car_available(car_id, exclude_request_id=row.id)

            car.status = CarStatus.ASSIGNED
            row.is_rental = False
            row.requested_car_id = car.id
            row.rental_company_id = None

        row.status = CarRequestStatus.ASSIGNED
        row.assigned_by_id = user_id
        return self._save(row, "assigned")

    def approve(self, request_id: str, user_id: str) -> CarRequest:
        row = self.find_one(request_id)
        ensure_transition(CAR_REQUEST_TRANSITIONS, row.status, CarRequestStatus.APPROVED)
        row.status = CarRequestStatus.APPROVED
        row.approved_by_id = user_id
        return self._save(row, "approved")

    def reject(self, request_id: str, user_id: str) -> CarRequest:
        row = self.find_one(request_id)
        ensure_transition(CAR_REQUEST_TRANSITIONS, row.status, CarRequestStatus.REJECTED)
        self._release_car(row)
        row.status = CarRequestStatus.REJECTED
        row.approved_by_id = user_id
        return self._save(row, "rejected")

    def mark_in_transit(self, request_id: str, user_id: str) -> CarRequest:
        row = self.find_one(request_id)
        ensure_transition(CAR_REQUEST_TRANSITIONS, row.status, CarRequestStatus.IN_TRANSIT)
        self._require_creator(row, user_id, "mark as in transit")

        if not row.is_rental and row.requested_car is not None:
            row.requested_car.status = CarStatus.IN_TRANSIT
        row.status = CarRequestStatus.IN_TRANSIT
        return self._save(row, "in transit")

    def confirm_return(self, request_id: str, data: Dict[str, Any]) -> CarRequest:
        row = self.find_one(request_id)
        ensure_transition(CAR_REQUEST_TRANSITIONS, row.status, CarRequestStatus.RETURNED)

        if not row.is_rental and row.requested_car is not None:
            row.requested_car.status = CarStatus.AVAILABLE
            if data.get("current_mileage") is not None:
                row.requested_car.mileage = data["current_mileage"]

        row.status = CarRequestStatus.RETURNED
        row.return_condition_notes = data.get("return_condition_notes")
        return self._save(row, "returned")
