"""Authentication strategy abstraction.

Two interchangeable strategies sit behind :class:`AuthStrategy`:

• **DevAuthStrategy** – active when ``AUTH_DISABLED`` is set; every request is
  served as a local super admin that is created on first use.
• **JWTAuthStrategy** – validates ``Authorization: Bearer <token>`` headers
  signed with ``JWT_SECRET``.

Tests monkey-patch :pydata:`ivms.dependencies.auth.AUTH_DISABLED` to switch
between them at runtime.
"""

from __future__ import annotations

import logging
from abc import ABC
from abc import abstractmethod

from fastapi import Request
from sqlalchemy.orm import Session

from ivms.exceptions import AuthenticationError
from ivms.models.enums import Department
from ivms.models.enums import Role
from ivms.models.models import User
from ivms.schemas.schemas import TokenClaims
from ivms.schemas.validation import validate_payload
from ivms.services.auth_service import decode_access_token
from ivms.services.auth_service import hash_password

logger = logging.getLogger(__name__)


class AuthStrategy(ABC):
    """Pluggable authentication backend (strategy pattern)."""

    @abstractmethod
    def get_current_user(self, request: Request, db: Session) -> User:  # noqa: D401 – abstract
        """Return the authenticated user or raise :class:`AuthenticationError`."""


# ---------------------------------------------------------------------------
# Development-mode bypass
# ---------------------------------------------------------------------------


class DevAuthStrategy(AuthStrategy):
    """Bypass token checks – used when *AUTH_DISABLED* is true."""

    DEV_USERNAME = "dev"

    def _get_or_create_dev_user(self, db: Session) -> User:
        user = db.query(User).filter(User.username == self.DEV_USERNAME, User.is_active.is_(True)).first()
        if user is not None:
            return user

        user = User(
            username=self.DEV_USERNAME,
            password_hash=hash_password(self.DEV_USERNAME),
            full_name="Development Admin",
            department=Department.ADMIN,
            role=Role.SUPER_ADMIN,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("Created development super admin %s", user.id)
        return user

    def get_current_user(self, request: Request, db: Session) -> User:  # noqa: D401 – impl
        return self._get_or_create_dev_user(db)


# ---------------------------------------------------------------------------
# HS256 JWT validation (production)
# ---------------------------------------------------------------------------


class JWTAuthStrategy(AuthStrategy):
    """Production strategy that validates HS256 tokens."""

    def get_current_user(self, request: Request, db: Session) -> User:  # noqa: D401 – impl
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.lower().startswith("bearer "):
            raise AuthenticationError("Missing bearer token")

        token = auth_header[7:].strip()
        if not token:
            raise AuthenticationError("Missing bearer token")

        claims, errors = validate_payload(TokenClaims, decode_access_token(token))
        if errors:
            logger.warning("Rejected token claims: %s", ", ".join(e.field for e in errors))
            raise AuthenticationError("Invalid token payload")

        user = db.query(User).filter(User.id == claims.sub).first()
        if user is None or not user.is_active:
            raise AuthenticationError("User not found or inactive")
        return user
