"""Fleet car routes."""

import logging
from typing import List
from typing import Optional

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Query
from fastapi import status
from sqlalchemy.orm import Session

from ivms.auth.policy import ADMIN_OR_GARAGE
from ivms.auth.policy import AUTHENTICATED
from ivms.auth.policy import MAINTENANCE_VIEWERS
from ivms.constants import CARS_PREFIX
from ivms.database import get_db
from ivms.dependencies.auth import require
from ivms.events import audited
from ivms.models.enums import AuditAction
from ivms.models.enums import CarStatus
from ivms.models.enums import CarType
from ivms.schemas.schemas import CarAvailability
from ivms.schemas.schemas import CarCreate
from ivms.schemas.schemas import CarDetail
from ivms.schemas.schemas import CarOption
from ivms.schemas.schemas import CarOut
from ivms.schemas.schemas import CarStatusUpdate
from ivms.schemas.schemas import CarUpdate
from ivms.services.cars import CarService

logger = logging.getLogger(__name__)

router = APIRouter(prefix=CARS_PREFIX, tags=["cars"])

ENTITY = "Car"


def _plate_and_vin(car) -> dict:
    return {"license_plate": car.license_plate, "vin": car.vin}


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


@router.get("", response_model=List[CarOut])
async def list_cars(
    type: Optional[CarType] = Query(None),
    status: Optional[CarStatus] = Query(None),
    model: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user=Depends(require(AUTHENTICATED)),
):
    return CarService(db).search(type=type, status=status, model=model, search=search)


@router.get("/available", response_model=List[CarOut])
async def list_available_cars(db: Session = Depends(get_db), current_user=Depends(require(AUTHENTICATED))):
    return CarService(db).available()


@router.get("/dropdown", response_model=List[CarOption])
async def car_dropdown(db: Session = Depends(get_db), current_user=Depends(require(AUTHENTICATED))):
    return CarService(db).find_active_for_dropdown()


@router.get("/expiring-warranty", response_model=List[CarOut])
async def list_expiring_warranty(
    days: int = Query(30, ge=1),
    db: Session = Depends(get_db),
    current_user=Depends(require(ADMIN_OR_GARAGE)),
):
    return CarService(db).expiring_warranty(days=days)


@router.get("/needing-maintenance", response_model=List[CarOut])
async def list_needing_maintenance(
    db: Session = Depends(get_db),
    current_user=Depends(require(MAINTENANCE_VIEWERS)),
):
    return CarService(db).needing_maintenance()


# ---------------------------------------------------------------------------
# /cars/{id}
# ---------------------------------------------------------------------------


@router.get("/{car_id}", response_model=CarDetail)
async def get_car(car_id: str, db: Session = Depends(get_db), current_user=Depends(require(AUTHENTICATED))):
    """Car with its ten most recent car requests and maintenance requests."""

    history = CarService(db).history(car_id)
    data = CarOut.model_validate(history["car"]).model_dump()
    data["car_requests"] = history["car_requests"]
    data["maintenance_requests"] = history["maintenance_requests"]
    return CarDetail.model_validate(data, from_attributes=True)


@router.get("/{car_id}/availability", response_model=CarAvailability)
async def get_car_availability(
    car_id: str,
    db: Session = Depends(get_db),
    current_user=Depends(require(AUTHENTICATED)),
):
    return {"available": CarService(db).check_availability(car_id)}


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


@router.post("", response_model=CarOut, status_code=status.HTTP_201_CREATED)
@audited(AuditAction.CAR_ADDED, ENTITY, details=_plate_and_vin)
async def create_car(
    payload: CarCreate,
    db: Session = Depends(get_db),
    current_user=Depends(require(ADMIN_OR_GARAGE)),
):
    return CarService(db).create(payload.model_dump())


@router.patch("/{car_id}", response_model=CarOut)
@audited(AuditAction.CAR_UPDATED, ENTITY)
async def update_car(
    car_id: str,
    payload: CarUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(require(ADMIN_OR_GARAGE)),
):
    return CarService(db).update(car_id, payload.changes())


@router.patch("/{car_id}/status", response_model=CarOut)
@audited(AuditAction.CAR_STATUS_CHANGED, ENTITY, details=lambda car: {"status": car.status.value})
async def update_car_status(
    car_id: str,
    payload: CarStatusUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(require(ADMIN_OR_GARAGE)),
):
    return CarService(db).update_status(car_id, payload.status)


@router.delete("/{car_id}", response_model=CarOut)
@audited(AuditAction.CAR_DELETED, ENTITY, details=_plate_and_vin)
async def delete_car(
    car_id: str,
    db: Session = Depends(get_db),
    current_user=Depends(require(ADMIN_OR_GARAGE)),
):
    """Mark the car DELETED; its plate and VIN become free for new cars."""
    return CarService(db).remove(car_id)
