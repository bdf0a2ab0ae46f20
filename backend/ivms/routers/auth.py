"""Authentication routes.

``POST /auth/login`` exchanges username and password for an HS256 access
token.  The token is sent back as ``Authorization: Bearer <jwt>`` and
validated by :class:`ivms.auth.strategy.JWTAuthStrategy`.
"""

import logging

from fastapi import APIRouter
from fastapi import Depends
from sqlalchemy.orm import Session

from ivms.auth.policy import AUTHENTICATED
from ivms.auth.policy import SUPER_ADMIN_ONLY
from ivms.constants import AUTH_PREFIX
from ivms.database import get_db
from ivms.dependencies.auth import require
from ivms.models.enums import AuditAction
from ivms.schemas.schemas import LoginRequest
from ivms.schemas.schemas import MessageOut
from ivms.schemas.schemas import ResetPasswordRequest
from ivms.schemas.schemas import TokenOut
from ivms.schemas.schemas import UserOut
from ivms.services.audit import AuditService
from ivms.services.auth_service import AuthService

logger = logging.getLogger(__name__)

router = APIRouter(prefix=AUTH_PREFIX, tags=["auth"])


# ---------------------------------------------------------------------------
# POST /auth/login
# ---------------------------------------------------------------------------


@router.post("/login", response_model=TokenOut)
async def login(payload: LoginRequest, db: Session = Depends(get_db)):
    return AuthService(db).login(payload.username, payload.password)


# ---------------------------------------------------------------------------
# GET /auth/me
# ---------------------------------------------------------------------------


@router.get("/me", response_model=UserOut)
async def read_current_user(current_user=Depends(require(AUTHENTICATED))):  # noqa: D401
    """Return the authenticated user's profile."""
    return current_user


# ---------------------------------------------------------------------------
# POST /auth/reset-password
# ---------------------------------------------------------------------------


@router.post("/reset-password", response_model=MessageOut)
async def reset_password(
    payload: ResetPasswordRequest,
    db: Session = Depends(get_db),
    current_user=Depends(require(SUPER_ADMIN_ONLY)),
):
    result = AuthService(db).reset_password(payload.user_id, payload.new_password)

    # The response carries no row, so the audit entry is written here.
    try:
        AuditService(db).log(AuditAction.PASSWORD_RESET, "User", payload.user_id, current_user)
    except Exception:
        db.rollback()
        logger.exception("Failed to write audit log for password reset of %s", payload.user_id)

    return result
