"""Spare part inventory routes."""

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
from ivms.auth.policy import GARAGE_DEPT
from ivms.config import get_settings
from ivms.constants import PARTS_PREFIX
from ivms.database import get_db
from ivms.dependencies.auth import require
from ivms.events import audited
from ivms.models.enums import AuditAction
from ivms.models.enums import CarType
from ivms.models.enums import TrackingMode
from ivms.schemas.schemas import PartAdjust
from ivms.schemas.schemas import PartCreate
from ivms.schemas.schemas import PartOut
from ivms.schemas.schemas import PartUpdate
from ivms.services.parts import PartService

logger = logging.getLogger(__name__)

router = APIRouter(prefix=PARTS_PREFIX, tags=["parts"])

ENTITY = "Part"


@router.get("", response_model=List[PartOut])
async def list_parts(
    search: Optional[str] = Query(None),
    car_type: Optional[CarType] = Query(None),
    car_model: Optional[str] = Query(None),
    tracking_mode: Optional[TrackingMode] = Query(None),
    db: Session = Depends(get_db),
    current_user=Depends(require(AUTHENTICATED)),
):
    return PartService(db).search(search=search, car_type=car_type, car_model=car_model, tracking_mode=tracking_mode)


@router.get("/low-stock", response_model=List[PartOut])
async def list_low_stock(
    threshold: Optional[int] = Query(None, ge=0),
    db: Session = Depends(get_db),
    current_user=Depends(require(ADMIN_OR_GARAGE)),
):
    if threshold is None:
        threshold = get_settings().low_stock_threshold
    return PartService(db).low_stock(threshold=threshold)


@router.get("/by-car-type/{car_type}", response_model=List[PartOut])
async def list_parts_by_car_type(
    car_type: CarType,
    db: Session = Depends(get_db),
    current_user=Depends(require(AUTHENTICATED)),
):
    return PartService(db).by_car_type(car_type)


@router.get("/{part_id}", response_model=PartOut)
async def get_part(part_id: str, db: Session = Depends(get_db), current_user=Depends(require(AUTHENTICATED))):
    return PartService(db).find_one(part_id)


# ---------------------------------------------------------------------------
# Writes (garage only)
# ---------------------------------------------------------------------------


@router.post("", response_model=PartOut, status_code=status.HTTP_201_CREATED)
@audited(AuditAction.PART_CREATED, ENTITY, details=lambda part: {"name": part.name})
async def create_part(
    payload: PartCreate,
    db: Session = Depends(get_db),
    current_user=Depends(require(GARAGE_DEPT)),
):
    return PartService(db).create(payload.model_dump(exclude_none=True))


@router.patch("/{part_id}", response_model=PartOut)
@audited(AuditAction.PART_UPDATED, ENTITY)
async def update_part(
    part_id: str,
    payload: PartUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(require(GARAGE_DEPT)),
):
    return PartService(db).update(part_id, payload.changes())


@router.post("/{part_id}/adjust", response_model=PartOut)
@audited(AuditAction.PART_QUANTITY_ADJUSTED, ENTITY, details=lambda part: {"quantity": part.quantity})
async def adjust_part_quantity(
    part_id: str,
    payload: PartAdjust,
    db: Session = Depends(get_db),
    current_user=Depends(require(GARAGE_DEPT)),
):
    return PartService(db).adjust_quantity(part_id, payload.adjustment)


@router.delete("/{part_id}", response_model=PartOut)
@audited(AuditAction.PART_DELETED, ENTITY)
async def delete_part(
    part_id: str,
    db: Session = Depends(get_db),
    current_user=Depends(require(GARAGE_DEPT)),
):
    return PartService(db).remove(part_id)
