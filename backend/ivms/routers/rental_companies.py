"""Rental company routes.

The plainest resource in the system: a single natural key (``name``) and a
boolean ``is_active`` soft-delete flag.  Reactivation is not exposed as its
own route; a PATCH with ``is_active: true`` is accepted and the partial
unique index rejects it when another active company holds the name.
"""

import logging
from typing import List

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Query
from fastapi import status
from sqlalchemy.orm import Session

from ivms.auth.policy import RENTAL_READERS
from ivms.auth.policy import RENTAL_WRITERS
from ivms.constants import RENTAL_COMPANIES_PREFIX
from ivms.database import get_db
from ivms.dependencies.auth import require
from ivms.events import audited
from ivms.models.enums import AuditAction
from ivms.schemas.schemas import RentalCompanyCreate
from ivms.schemas.schemas import RentalCompanyOption
from ivms.schemas.schemas import RentalCompanyOut
from ivms.schemas.schemas import RentalCompanyUpdate
from ivms.services.rental_companies import RentalCompanyService

logger = logging.getLogger(__name__)

router = APIRouter(prefix=RENTAL_COMPANIES_PREFIX, tags=["rental-companies"])

ENTITY = "RentalCompany"


# ---------------------------------------------------------------------------
# POST /rental-companies
# ---------------------------------------------------------------------------


@router.post("", response_model=RentalCompanyOut, status_code=status.HTTP_201_CREATED)
@audited(AuditAction.RENTAL_COMPANY_CREATED, ENTITY, details=lambda row: {"name": row.name})
async def create_rental_company(
    payload: RentalCompanyCreate,
    db: Session = Depends(get_db),
    current_user=Depends(require(RENTAL_WRITERS)),
):
    data = payload.model_dump(exclude_none=True)
    return RentalCompanyService(db).create(data)


# ---------------------------------------------------------------------------
# GET /rental-companies
# ---------------------------------------------------------------------------


@router.get("", response_model=List[RentalCompanyOut])
async def list_rental_companies(
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
    current_user=Depends(require(RENTAL_READERS)),
):
    return RentalCompanyService(db).find_all(include_inactive=include_inactive)


@router.get("/dropdown", response_model=List[RentalCompanyOption])
async def rental_company_dropdown(
    db: Session = Depends(get_db),
    current_user=Depends(require(RENTAL_READERS)),
):
    """Active companies as ``{id, name}`` pairs for select boxes."""
    return RentalCompanyService(db).find_active_for_dropdown()


# ---------------------------------------------------------------------------
# /rental-companies/{id}
# ---------------------------------------------------------------------------


@router.get("/{company_id}", response_model=RentalCompanyOut)
async def get_rental_company(
    company_id: str,
    db: Session = Depends(get_db),
    current_user=Depends(require(RENTAL_WRITERS)),
):
    return RentalCompanyService(db).find_one(company_id)


@router.patch("/{company_id}", response_model=RentalCompanyOut)
@audited(AuditAction.RENTAL_COMPANY_UPDATED, ENTITY)
async def update_rental_company(
    company_id: str,
    payload: RentalCompanyUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(require(RENTAL_WRITERS)),
):
    return RentalCompanyService(db).update(company_id, payload.changes())


@router.delete("/{company_id}", response_model=RentalCompanyOut)
@audited(AuditAction.RENTAL_COMPANY_DELETED, ENTITY)
async def delete_rental_company(
    company_id: str,
    db: Session = Depends(get_db),
    current_user=Depends(require(RENTAL_WRITERS)),
):
    """Soft delete; the row stays readable through ``GET /{id}``."""
    return RentalCompanyService(db).remove(company_id)
