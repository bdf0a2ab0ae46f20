import logging
from datetime import timedelta
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

from sqlalchemy import func
from sqlalchemy import or_

from ivms.exceptions import BusinessRuleError
from ivms.models.enums import ACTIVE_CAR_REQUEST_STATUSES
from ivms.models.enums import ACTIVE_MAINTENANCE_STATUSES
from ivms.models.enums import CarStatus
from ivms.models.enums import CarType
from ivms.models.models import Car
from ivms.models.models import CarRequest
from ivms.models.models import MaintenanceRequest
from ivms.services.resource_service import ResourceService
from ivms.utils.time import as_naive_utc
from ivms.utils.time import utc_now_naive

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 10

# Stored in naive UTC columns.
DATE_FIELDS = ("warranty_expiry", "next_maintenance_date")


def normalise_dates(data: Dict[str, Any]) -> Dict[str, Any]:
    values = dict(data)
    for key in DATE_FIELDS:
        if values.get(key) is not None:
            values[key] = as_naive_utc(values[key])
    return values


class CarService(ResourceService[Car]):
    """Fleet cars.

    Cars are keyed by *both* ``license_plate`` and ``vin``; the soft-delete
    marker is ``status == DELETED`` rather than a boolean flag.
    """

    model = Car
    label = "Car"
    natural_keys = ("license_plate", "vin")
    conflict_messages = {
        "license_plate": "A car with this license plate already exists",
        "vin": "A car with this VIN already exists",
    }

    # Soft delete via status ----------------------------------------------

    def active_clause(self):
        return Car.status != CarStatus.DELETED

    def is_active(self, row: Car) -> bool:
        return row.status != CarStatus.DELETED

    def create_defaults(self) -> Dict[str, Any]:
        return {"status": CarStatus.AVAILABLE, "mileage": 0}

    def deactivate_values(self) -> Dict[str, Any]:
        return {"status": CarStatus.DELETED}

    def activate_values(self) -> Dict[str, Any]:
        return {"status": CarStatus.AVAILABLE}

    def create(self, data: Dict[str, Any]) -> Car:
        return super().create(normalise_dates(data))

    def update(self, entity_id: str, data: Dict[str, Any]) -> Car:
        return super().update(entity_id, normalise_dates(data))

    def before_update(self, row: Car, data: Dict[str, Any]) -> None:
        if row.status == CarStatus.DELETED:
            raise BusinessRuleError("Cannot update a deleted car")
        if data.get("status") == CarStatus.DELETED:
            raise BusinessRuleError("Cars are deleted through the delete endpoint")

    def before_remove(self, row: Car) -> None:
        if row.status == CarStatus.DELETED:
            raise BusinessRuleError("Car is already deleted")

        active_requests = (
            self.db.query(func.count(CarRequest.id))
            .filter(CarRequest.requested_car_id == row.id, CarRequest.status.in_(ACTIVE_CAR_REQUEST_STATUSES))
            .scalar()
        )
        if active_requests:
            raise BusinessRuleError("Cannot delete car with active requests. Complete or cancel all requests first.")

        active_maintenance = (
            self.db.query(func.count(MaintenanceRequest.id))
            .filter(MaintenanceRequest.car_id == row.id, MaintenanceRequest.status.in_(ACTIVE_MAINTENANCE_STATUSES))
            .scalar()
        )
        if active_maintenance:
            raise BusinessRuleError(
                "Cannot delete car with active maintenance requests. Complete or cancel all maintenance first."
            )

    # Queries -------------------------------------------------------------

    def search(
        self,
        *,
        type: Optional[CarType] = None,
        status: Optional[CarStatus] = None,
        model: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[Car]:
        """Non-deleted cars matching every given filter, newest first."""

        query = self.db.query(Car).filter(self.active_clause())
        if type is not None:
            query = query.filter(Car.type == type)
        if status is not None:
            query = query.filter(Car.status == status)
        if model:
            query = query.filter(Car.model.ilike(f"%{model}%"))
        if search:
            pattern = f"%{search}%"
            query = query.filter(
                or_(
                    Car.model.ilike(pattern),
                    Car.license_plate.ilike(pattern),
                    Car.vin.ilike(pattern),
                    Car.color.ilike(pattern),
                )
            )
        return query.order_by(Car.created_at.desc()).all()

    def history(self, car_id: str) -> Dict[str, Any]:
        """Car plus its most recent car requests and maintenance requests."""

        car = self.find_one(car_id)
        car_requests = (
            self.db.query(CarRequest)
            .filter(CarRequest.requested_car_id == car_id)
            .order_by(CarRequest.created_at.desc())
            .limit(HISTORY_LIMIT)
            .all()
        )
        maintenance = (
            self.db.query(MaintenanceRequest)
            .filter(MaintenanceRequest.car_id == car_id)
            .order_by(MaintenanceRequest.created_at.desc())
            .limit(HISTORY_LIMIT)
            .all()
        )
        return {"car": car, "car_requests": car_requests, "maintenance_requests": maintenance}

    def check_availability(self, car_id: str) -> bool:
        return self.find_one(car_id).status == CarStatus.AVAILABLE

    def available(self) -> List[Car]:
        return self.db.query(Car).filter(Car.status == CarStatus.AVAILABLE).order_by(Car.model.asc()).all()

    def update_status(self, car_id: str, status: CarStatus) -> Car:
        car = self.find_one(car_id)
        if car.status == CarStatus.DELETED:
            raise BusinessRuleError("Cannot update status of a deleted car")
        if status == CarStatus.DELETED:
            raise BusinessRuleError("Cars are deleted through the delete endpoint")

        previous = car.status
        car.status = status
        self._commit(car)
        logger.info("Car %s status %s -> %s", car_id, previous, status)
        return car

    def expiring_warranty(self, days: int = 30) -> List[Car]:
        now = utc_now_naive()
        return (
            self.db.query(Car)
            .filter(
                self.active_clause(),
                Car.warranty_expiry.isnot(None),
                Car.warranty_expiry >= now,
                Car.warranty_expiry <= now + timedelta(days=days),
            )
            .order_by(Car.warranty_expiry.asc())
            .all()
        )

    def needing_maintenance(self) -> List[Car]:
        return (
            self.db.query(Car)
            .filter(
                self.active_clause(),
                Car.next_maintenance_date.isnot(None),
                Car.next_maintenance_date <= utc_now_naive(),
            )
            .order_by(Car.next_maintenance_date.asc())
            .all()
        )
