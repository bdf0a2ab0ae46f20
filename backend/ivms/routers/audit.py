"""Audit log read routes."""

import logging
from datetime import datetime
from typing import List
from typing import Optional

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Query
from sqlalchemy.orm import Session

from ivms.auth.policy import AUTHENTICATED
from ivms.constants import AUDIT_PREFIX
from ivms.database import get_db
from ivms.dependencies.auth import require
from ivms.models.enums import Department
from ivms.models.enums import Role
from ivms.schemas.schemas import AuditLogOut
from ivms.schemas.schemas import AuditStat
from ivms.services.audit import AuditService

logger = logging.getLogger(__name__)

router = APIRouter(prefix=AUDIT_PREFIX, tags=["audit"])


@router.get("", response_model=List[AuditLogOut])
async def list_audit_logs(
    action: Optional[str] = Query(None),
    entity_type: Optional[str] = Query(None),
    entity_id: Optional[str] = Query(None),
    performed_by_id: Optional[str] = Query(None),
    department: Optional[Department] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    current_user=Depends(require(AUTHENTICATED)),
):
    """Newest entries first; non super admins only see their own department."""

    return AuditService(db).find_all(
        current_user,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        performed_by_id=performed_by_id,
        department=department,
        start_date=start_date,
        end_date=end_date,
    )


@router.get("/entity/{entity_type}/{entity_id}", response_model=List[AuditLogOut])
async def list_entity_history(
    entity_type: str,
    entity_id: str,
    db: Session = Depends(get_db),
    current_user=Depends(require(AUTHENTICATED)),
):
    return AuditService(db).by_entity(entity_type, entity_id)


@router.get("/recent", response_model=List[AuditLogOut])
async def list_recent(
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user=Depends(require(AUTHENTICATED)),
):
    return AuditService(db).recent(current_user.department, limit=limit)


@router.get("/user/{user_id}", response_model=List[AuditLogOut])
async def list_user_actions(
    user_id: str,
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user=Depends(require(AUTHENTICATED)),
):
    return AuditService(db).by_user(user_id, limit=limit)


@router.get("/stats", response_model=List[AuditStat])
async def action_stats(
    start_date: datetime = Query(...),
    end_date: datetime = Query(...),
    department: Optional[Department] = Query(None),
    db: Session = Depends(get_db),
    current_user=Depends(require(AUTHENTICATED)),
):
    if current_user.role != Role.SUPER_ADMIN:
        department = current_user.department
    return AuditService(db).stats(start_date, end_date, department=department)
