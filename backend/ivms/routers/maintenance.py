"""Maintenance request routes.

Every workflow transition is audited and published on the event bus so the
notification fan-out can tell the next department in line.
"""

import logging
from datetime import datetime
from typing import List
from typing import Optional

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Query
from fastapi import status
from sqlalchemy.orm import Session

from ivms.auth.policy import ADMIN_DEPT
from ivms.auth.policy import AUTHENTICATED
from ivms.auth.policy import GARAGE_DEPT
from ivms.auth.policy import MAINTENANCE_DEPT
from ivms.auth.policy import MAINTENANCE_VIEWERS
from ivms.auth.policy import SUPER_ADMIN_ONLY
from ivms.constants import MAINTENANCE_PREFIX
from ivms.database import get_db
from ivms.dependencies.auth import require
from ivms.events import EventType
from ivms.events import audited
from ivms.events import publish_event
from ivms.models.enums import AuditAction
from ivms.models.enums import MaintenanceStatus
from ivms.models.enums import MaintenanceType
from ivms.schemas.schemas import MaintenanceComplete
from ivms.schemas.schemas import MaintenanceCreate
from ivms.schemas.schemas import MaintenanceDue
from ivms.schemas.schemas import MaintenanceOut
from ivms.schemas.schemas import MaintenanceSchedule
from ivms.schemas.schemas import MaintenanceTriage
from ivms.services.maintenance import MaintenanceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix=MAINTENANCE_PREFIX, tags=["maintenance"])

ENTITY = "MaintenanceRequest"


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


@router.get("", response_model=List[MaintenanceOut])
async def list_maintenance(
    status: Optional[MaintenanceStatus] = Query(None),
    maintenance_type: Optional[MaintenanceType] = Query(None),
    car_id: Optional[str] = Query(None),
    from_date: Optional[datetime] = Query(None),
    to_date: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    current_user=Depends(require(AUTHENTICATED)),
):
    return MaintenanceService(db).find_all(
        status=status,
        maintenance_type=maintenance_type,
        car_id=car_id,
        from_date=from_date,
        to_date=to_date,
    )


@router.get("/pending", response_model=List[MaintenanceOut])
async def list_pending(db: Session = Depends(get_db), current_user=Depends(require(MAINTENANCE_DEPT))):
    """Requests waiting for triage, oldest first."""
    return MaintenanceService(db).pending()


@router.get("/pending-approval", response_model=List[MaintenanceOut])
async def list_pending_approval(db: Session = Depends(get_db), current_user=Depends(require(ADMIN_DEPT))):
    return MaintenanceService(db).pending_approval()


@router.get("/cars-due", response_model=List[MaintenanceDue])
async def list_cars_due(
    days: int = Query(30, ge=1),
    db: Session = Depends(get_db),
    current_user=Depends(require(MAINTENANCE_VIEWERS)),
):
    return MaintenanceService(db).cars_due(window_days=days)


# ---------------------------------------------------------------------------
# Per car
# ---------------------------------------------------------------------------


@router.get("/car/{car_id}/history", response_model=List[MaintenanceOut])
async def car_history(car_id: str, db: Session = Depends(get_db), current_user=Depends(require(AUTHENTICATED))):
    return MaintenanceService(db).history(car_id)


@router.get("/car/{car_id}/schedule", response_model=MaintenanceSchedule)
async def car_schedule(car_id: str, db: Session = Depends(get_db), current_user=Depends(require(AUTHENTICATED))):
    schedule = MaintenanceService(db).schedule(car_id)
    return MaintenanceSchedule.model_validate(schedule, from_attributes=True)


@router.get("/car/{car_id}/active", response_model=Optional[MaintenanceOut])
async def car_active(car_id: str, db: Session = Depends(get_db), current_user=Depends(require(AUTHENTICATED))):
    return MaintenanceService(db).active_for_car(car_id)


@router.get("/{request_id}", response_model=MaintenanceOut)
async def get_maintenance(
    request_id: str,
    db: Session = Depends(get_db),
    current_user=Depends(require(AUTHENTICATED)),
):
    return MaintenanceService(db).find_one(request_id)


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------


@router.post("", response_model=MaintenanceOut, status_code=status.HTTP_201_CREATED)
@publish_event(EventType.MAINTENANCE_CREATED)
@audited(AuditAction.MAINTENANCE_CREATED, ENTITY, details=lambda row: {"car_id": row.car_id})
async def create_maintenance(
    payload: MaintenanceCreate,
    db: Session = Depends(get_db),
    current_user=Depends(require(GARAGE_DEPT)),
):
    return MaintenanceService(db).create(payload.model_dump(), current_user.id)


@router.post("/{request_id}/triage", response_model=MaintenanceOut)
@publish_event(EventType.MAINTENANCE_TRIAGED)
@audited(AuditAction.MAINTENANCE_TRIAGED, ENTITY, details=lambda row: {"maintenance_type": row.maintenance_type.value})
async def triage_maintenance(
    request_id: str,
    payload: MaintenanceTriage,
    db: Session = Depends(get_db),
    current_user=Depends(require(MAINTENANCE_DEPT)),
):
    return MaintenanceService(db).triage(request_id, payload.model_dump(), current_user.id)


@router.post("/{request_id}/approve", response_model=MaintenanceOut)
@publish_event(EventType.MAINTENANCE_APPROVED)
@audited(AuditAction.MAINTENANCE_APPROVED, ENTITY)
async def approve_maintenance(
    request_id: str,
    db: Session = Depends(get_db),
    current_user=Depends(require(SUPER_ADMIN_ONLY)),
):
    return MaintenanceService(db).approve(request_id, current_user.id)


@router.post("/{request_id}/reject", response_model=MaintenanceOut)
@publish_event(EventType.MAINTENANCE_REJECTED)
@audited(AuditAction.MAINTENANCE_REJECTED, ENTITY)
async def reject_maintenance(
    request_id: str,
    db: Session = Depends(get_db),
    current_user=Depends(require(SUPER_ADMIN_ONLY)),
):
    return MaintenanceService(db).reject(request_id, current_user.id)


@router.post("/{request_id}/start", response_model=MaintenanceOut)
@publish_event(EventType.MAINTENANCE_STARTED)
@audited(AuditAction.MAINTENANCE_STARTED, ENTITY)
async def start_maintenance(
    request_id: str,
    db: Session = Depends(get_db),
    current_user=Depends(require(MAINTENANCE_DEPT)),
):
    return MaintenanceService(db).start(request_id)


@router.post("/{request_id}/complete", response_model=MaintenanceOut)
@publish_event(EventType.MAINTENANCE_COMPLETED)
@audited(AuditAction.MAINTENANCE_COMPLETED, ENTITY)
async def complete_maintenance(
    request_id: str,
    payload: MaintenanceComplete,
    db: Session = Depends(get_db),
    current_user=Depends(require(MAINTENANCE_DEPT)),
):
    return MaintenanceService(db).complete(request_id, payload.model_dump())
