import logging
import math
from datetime import datetime
from datetime import timedelta
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm import selectinload

from ivms.exceptions import BusinessRuleError
from ivms.exceptions import NotFoundError
from ivms.models.enums import ACTIVE_MAINTENANCE_STATUSES
from ivms.models.enums import CarStatus
from ivms.models.enums import MaintenanceStatus
from ivms.models.enums import MaintenanceType
from ivms.models.models import Car
from ivms.models.models import MaintenanceRequest
from ivms.services.transitions import MAINTENANCE_TRANSITIONS
from ivms.services.transitions import ensure_transition
from ivms.utils.time import add_months
from ivms.utils.time import as_naive_utc
from ivms.utils.time import utc_now_naive

logger = logging.getLogger(__name__)

DUE_WINDOW_DAYS = 30


class MaintenanceService:
    """Maintenance request workflow.

    ``PENDING -> PENDING_APPROVAL -> APPROVED | REJECTED`` and
    ``APPROVED -> IN_PROGRESS -> COMPLETED``.  Starting work parks the car in
    ``UNDER_MAINTENANCE``; completing it returns the car to ``AVAILABLE`` and
    schedules the next service when the car has an interval configured.
    """

    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return self.db.query(MaintenanceRequest).options(
            selectinload(MaintenanceRequest.car),
            selectinload(MaintenanceRequest.created_by),
            selectinload(MaintenanceRequest.triaged_by),
            selectinload(MaintenanceRequest.approved_by),
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_all(
        self,
        *,
        status: Optional[MaintenanceStatus] = None,
        maintenance_type: Optional[MaintenanceType] = None,
        car_id: Optional[str] = None,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
    ) -> List[MaintenanceRequest]:
        query = self._query()
        if status is not None:
            query = query.filter(MaintenanceRequest.status == status)
        if maintenance_type is not None:
            query = query.filter(MaintenanceRequest.maintenance_type == maintenance_type)
        if car_id is not None:
            query = query.filter(MaintenanceRequest.car_id == car_id)
        if from_date is not None:
            query = query.filter(MaintenanceRequest.created_at >= as_naive_utc(from_date))
        if to_date is not None:
            query = query.filter(MaintenanceRequest.created_at <= as_naive_utc(to_date))
        return query.order_by(MaintenanceRequest.created_at.desc()).all()

    def find_one(self, request_id: str) -> MaintenanceRequest:
        row = self._query().filter(MaintenanceRequest.id == request_id).first()
        if row is None:
            raise NotFoundError("Maintenance request", request_id)
        return row

    def pending(self) -> List[MaintenanceRequest]:
        return self.find_all_by_status(MaintenanceStatus.PENDING)

    def pending_approval(self) -> List[MaintenanceRequest]:
        return self.find_all_by_status(MaintenanceStatus.PENDING_APPROVAL)

    def find_all_by_status(self, status: MaintenanceStatus) -> List[MaintenanceRequest]:
        # Oldest first: work queues are served in arrival order.
        query = self._query().filter(MaintenanceRequest.status == status)
        return query.order_by(MaintenanceRequest.created_at.asc()).all()

    def active_for_car(self, car_id: str) -> Optional[MaintenanceRequest]:
        return (
            self.db.query(MaintenanceRequest)
            .filter(
                MaintenanceRequest.car_id == car_id,
                MaintenanceRequest.status.in_(ACTIVE_MAINTENANCE_STATUSES),
            )
            .first()
        )

    def history(self, car_id: str) -> List[MaintenanceRequest]:
        query = self._query().filter(MaintenanceRequest.car_id == car_id)
        return query.order_by(MaintenanceRequest.created_at.desc()).all()

    def schedule(self, car_id: str) -> Dict[str, Any]:
        car = self._get_car(car_id)
        history = self.history(car_id)
        last = next((m for m in history if m.status == MaintenanceStatus.COMPLETED), None)
        return {
            "car": car,
            "next_maintenance_date": car.next_maintenance_date,
            "maintenance_interval_months": car.maintenance_interval_months,
            "last_maintenance": last,
            "maintenance_history": history,
        }

    def cars_due(self, window_days: int = DUE_WINDOW_DAYS) -> List[Dict[str, Any]]:
        """Non-deleted cars whose next service falls within *window_days* (or is overdue)."""

        now = utc_now_naive()
        cars = (
            self.db.query(Car)
            .filter(
                Car.status != CarStatus.DELETED,
                Car.next_maintenance_date.isnot(None),
                Car.next_maintenance_date <= now + timedelta(days=window_days),
            )
            .order_by(Car.next_maintenance_date.asc())
            .all()
        )
        return [
            {
                "id": car.id,
                "model": car.model,
                "license_plate": car.license_plate,
                "next_maintenance_date": car.next_maintenance_date,
                "days_until_due": math.ceil((car.next_maintenance_date - now).total_seconds() / 86400),
            }
            for car in cars
        ]

    # ------------------------------------------------------------------
    # Workflow
    # ------------------------------------------------------------------

    def _get_car(self, car_id: str) -> Car:
        car = self.db.query(Car).filter(Car.id == car_id).first()
        if car is None:
            raise NotFoundError("Car", car_id)
        return car

    def _save(self, row: MaintenanceRequest, event: str) -> MaintenanceRequest:
        self.db.commit()
        self.db.refresh(row)
        logger.info("Maintenance request %s %s (status=%s)", row.id, event, row.status.value)
        return row

    def create(self, data: Dict[str, Any], user_id: str) -> MaintenanceRequest:
        car = self._get_car(data["car_id"])
        if car.status == CarStatus.DELETED:
            raise BusinessRuleError("Cannot create maintenance for deleted car")
        if self.active_for_car(car.id) is not None:
            raise BusinessRuleError("Car already has an active maintenance request")

        row = MaintenanceRequest(
            car_id=car.id,
            description=data["description"],
            notes=data.get("notes"),
            status=MaintenanceStatus.PENDING,
            created_by_id=user_id,
        )
        self.db.add(row)
        return self._save(row, "created")

    def triage(self, request_id: str, data: Dict[str, Any], user_id: str) -> MaintenanceRequest:
        row = self.find_one(request_id)
        ensure_transition(MAINTENANCE_TRANSITIONS, row.status, MaintenanceStatus.PENDING_APPROVAL)

        maintenance_type = data["maintenance_type"]
        if maintenance_type == MaintenanceType.EXTERNAL and not data.get("external_vendor"):
            raise BusinessRuleError("External vendor is required for external maintenance")

        row.status = MaintenanceStatus.PENDING_APPROVAL
        row.maintenance_type = maintenance_type
        row.external_vendor = data.get("external_vendor")
        row.estimated_cost = data.get("estimated_cost")
        row.triaged_by_id = user_id
        return self._save(row, "triaged")

    def approve(self, request_id: str, user_id: str) -> MaintenanceRequest:
        row = self.find_one(request_id)
        ensure_transition(MAINTENANCE_TRANSITIONS, row.status, MaintenanceStatus.APPROVED)
        row.status = MaintenanceStatus.APPROVED
        row.approved_by_id = user_id
        return self._save(row, "approved")

    def reject(self, request_id: str, user_id: str) -> MaintenanceRequest:
        row = self.find_one(request_id)
        ensure_transition(MAINTENANCE_TRANSITIONS, row.status, MaintenanceStatus.REJECTED)
        row.status = MaintenanceStatus.REJECTED
        row.approved_by_id = user_id
        return self._save(row, "rejected")

    def start(self, request_id: str) -> MaintenanceRequest:
        row = self.find_one(request_id)
        ensure_transition(MAINTENANCE_TRANSITIONS, row.status, MaintenanceStatus.IN_PROGRESS)
        row.car.status = CarStatus.UNDER_MAINTENANCE
        row.status = MaintenanceStatus.IN_PROGRESS
        return self._save(row, "started")

    def complete(self, request_id: str, data: Dict[str, Any]) -> MaintenanceRequest:
        row = self.find_one(request_id)
        ensure_transition(MAINTENANCE_TRANSITIONS, row.status, MaintenanceStatus.COMPLETED)

        car = row.car
        car.status = CarStatus.AVAILABLE
        if car.maintenance_interval_months:
            car.next_maintenance_date = add_months(utc_now_naive(), car.maintenance_interval_months)

        row.status = MaintenanceStatus.COMPLETED
        if data.get("external_cost") is not None:
            row.external_cost = data["external_cost"]
        if data.get("completion_notes"):
            row.completion_notes = data["completion_notes"]
        return self._save(row, "completed")
