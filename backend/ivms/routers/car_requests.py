"""Car request routes (operation -> garage -> admin workflow)."""

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
from ivms.auth.policy import ADMIN_OR_GARAGE
from ivms.auth.policy import AUTHENTICATED
from ivms.auth.policy import GARAGE_DEPT
from ivms.auth.policy import OPERATION_DEPT
from ivms.auth.policy import SUPER_ADMIN_ONLY
from ivms.constants import CAR_REQUESTS_PREFIX
from ivms.database import get_db
from ivms.dependencies.auth import require
from ivms.events import EventType
from ivms.events import audited
from ivms.events import publish_event
from ivms.models.enums import AuditAction
from ivms.models.enums import CarRequestStatus
from ivms.models.enums import CarType
from ivms.schemas.schemas import CarAssign
from ivms.schemas.schemas import CarRequestCreate
from ivms.schemas.schemas import CarRequestOut
from ivms.schemas.schemas import CarRequestUpdate
from ivms.schemas.schemas import CarReturn
from ivms.services.car_requests import CarRequestService

logger = logging.getLogger(__name__)

router = APIRouter(prefix=CAR_REQUESTS_PREFIX, tags=["car-requests"])

ENTITY = "CarRequest"


def _assignment_details(row) -> dict:
    if row.is_rental:
        return {"is_rental": True, "rental_company_id": row.rental_company_id}
    return {"is_rental": False, "car_id": row.requested_car_id}


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


@router.get("", response_model=List[CarRequestOut])
async def list_car_requests(
    status: Optional[CarRequestStatus] = Query(None),
    car_type: Optional[CarType] = Query(None),
    from_date: Optional[datetime] = Query(None),
    to_date: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    current_user=Depends(require(AUTHENTICATED)),
):
    return CarRequestService(db).find_all(status=status, car_type=car_type, from_date=from_date, to_date=to_date)


@router.get("/mine", response_model=List[CarRequestOut])
async def list_my_requests(db: Session = Depends(get_db), current_user=Depends(require(AUTHENTICATED))):
    return CarRequestService(db).mine(current_user.id)


@router.get("/pending", response_model=List[CarRequestOut])
async def list_pending(db: Session = Depends(get_db), current_user=Depends(require(ADMIN_OR_GARAGE))):
    """Requests waiting for a garage assignment."""
    return CarRequestService(db).pending()


@router.get("/assigned", response_model=List[CarRequestOut])
async def list_assigned(db: Session = Depends(get_db), current_user=Depends(require(ADMIN_DEPT))):
    """Requests waiting for admin approval."""
    return CarRequestService(db).assigned()


@router.get("/{request_id}", response_model=CarRequestOut)
async def get_car_request(
    request_id: str,
    db: Session = Depends(get_db),
    current_user=Depends(require(AUTHENTICATED)),
):
    return CarRequestService(db).find_one(request_id)


# ---------------------------------------------------------------------------
# Requester actions
# ---------------------------------------------------------------------------


@router.post("", response_model=CarRequestOut, status_code=status.HTTP_201_CREATED)
@publish_event(EventType.CAR_REQUEST_CREATED)
@audited(AuditAction.CAR_REQUEST_CREATED, ENTITY, details=lambda row: {"destination": row.destination})
async def create_car_request(
    payload: CarRequestCreate,
    db: Session = Depends(get_db),
    current_user=Depends(require(OPERATION_DEPT)),
):
    return CarRequestService(db).create(payload.model_dump(), current_user.id)


@router.patch("/{request_id}", response_model=CarRequestOut)
@audited(AuditAction.CAR_REQUEST_UPDATED, ENTITY)
async def update_car_request(
    request_id: str,
    payload: CarRequestUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(require(OPERATION_DEPT)),
):
    return CarRequestService(db).update(request_id, payload.changes(), current_user.id)


@router.post("/{request_id}/cancel", response_model=CarRequestOut)
@publish_event(EventType.CAR_REQUEST_CANCELLED)
@audited(AuditAction.CAR_REQUEST_CANCELLED, ENTITY)
async def cancel_car_request(
    request_id: str,
    db: Session = Depends(get_db),
    current_user=Depends(require(OPERATION_DEPT)),
):
    return CarRequestService(db).cancel(request_id, current_user.id)


@router.post("/{request_id}/in-transit", response_model=CarRequestOut)
@publish_event(EventType.CAR_IN_TRANSIT)
@audited(AuditAction.CAR_IN_TRANSIT, ENTITY)
async def mark_in_transit(
    request_id: str,
    db: Session = Depends(get_db),
    current_user=Depends(require(OPERATION_DEPT)),
):
    return CarRequestService(db).mark_in_transit(request_id, current_user.id)


# ---------------------------------------------------------------------------
# Garage and admin actions
# ---------------------------------------------------------------------------


@router.post("/{request_id}/assign", response_model=CarRequestOut)
@publish_event(EventType.CAR_REQUEST_ASSIGNED)
@audited(AuditAction.CAR_REQUEST_ASSIGNED, ENTITY, details=_assignment_details)
async def assign_car(
    request_id: str,
    payload: CarAssign,
    db: Session = Depends(get_db),
    current_user=Depends(require(GARAGE_DEPT)),
):
    return CarRequestService(db).assign(request_id, payload.model_dump(), current_user.id)


@router.post("/{request_id}/approve", response_model=CarRequestOut)
@publish_event(EventType.CAR_REQUEST_APPROVED)
@audited(AuditAction.CAR_REQUEST_APPROVED, ENTITY)
async def approve_car_request(
    request_id: str,
    db: Session = Depends(get_db),
    current_user=Depends(require(SUPER_ADMIN_ONLY)),
):
    return CarRequestService(db).approve(request_id, current_user.id)


@router.post("/{request_id}/reject", response_model=CarRequestOut)
@publish_event(EventType.CAR_REQUEST_REJECTED)
@audited(AuditAction.CAR_REQUEST_REJECTED, ENTITY)
async def reject_car_request(
    request_id: str,
    db: Session = Depends(get_db),
    current_user=Depends(require(SUPER_ADMIN_ONLY)),
):
    return CarRequestService(db).reject(request_id, current_user.id)


@router.post("/{request_id}/return", response_model=CarRequestOut)
@publish_event(EventType.CAR_RETURNED)
@audited(AuditAction.CAR_RETURNED, ENTITY)
async def confirm_return(
    request_id: str,
    payload: CarReturn,
    db: Session = Depends(get_db),
    current_user=Depends(require(GARAGE_DEPT)),
):
    return CarRequestService(db).confirm_return(request_id, payload.model_dump())
