"""User administration routes (super admins only)."""

import logging
from typing import List

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Query
from fastapi import status
from sqlalchemy.orm import Session

from ivms.auth.policy import SUPER_ADMIN_ONLY
from ivms.constants import USERS_PREFIX
from ivms.database import get_db
from ivms.dependencies.auth import require
from ivms.events import audited
from ivms.models.enums import AuditAction
from ivms.schemas.schemas import UserCreate
from ivms.schemas.schemas import UserOut
from ivms.schemas.schemas import UserUpdate
from ivms.services.users import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix=USERS_PREFIX, tags=["users"])

ENTITY = "User"


def _account(user) -> dict:
    return {"username": user.username, "department": user.department.value, "role": user.role.value}


@router.get("", response_model=List[UserOut])
async def list_users(
    include_inactive: bool = Query(True),
    db: Session = Depends(get_db),
    current_user=Depends(require(SUPER_ADMIN_ONLY)),
):
    return UserService(db).find_all(include_inactive=include_inactive)


@router.get("/{user_id}", response_model=UserOut)
async def get_user(user_id: str, db: Session = Depends(get_db), current_user=Depends(require(SUPER_ADMIN_ONLY))):
    return UserService(db).find_one(user_id)


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
@audited(AuditAction.USER_CREATED, ENTITY, details=_account)
async def create_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
    current_user=Depends(require(SUPER_ADMIN_ONLY)),
):
    return UserService(db).create(payload.model_dump())


@router.patch("/{user_id}", response_model=UserOut)
@audited(AuditAction.USER_UPDATED, ENTITY, details=_account)
async def update_user(
    user_id: str,
    payload: UserUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(require(SUPER_ADMIN_ONLY)),
):
    return UserService(db).update(user_id, payload.changes())


@router.delete("/{user_id}", response_model=UserOut)
@audited(AuditAction.USER_DEACTIVATED, ENTITY)
async def deactivate_user(
    user_id: str,
    db: Session = Depends(get_db),
    current_user=Depends(require(SUPER_ADMIN_ONLY)),
):
    return UserService(db).deactivate(user_id)


@router.post("/{user_id}/activate", response_model=UserOut)
@audited(AuditAction.USER_ACTIVATED, ENTITY)
async def activate_user(
    user_id: str,
    db: Session = Depends(get_db),
    current_user=Depends(require(SUPER_ADMIN_ONLY)),
):
    """Reactivate an account; fails with 409 when the username was reused meanwhile."""
    return UserService(db).activate(user_id)
