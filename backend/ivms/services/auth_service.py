"""Password hashing and access-token helpers.

Hashes use *passlib*'s bcrypt scheme; tokens are HS256 JWTs signed with
``JWT_SECRET`` via *python-jose*.
"""

import logging
from datetime import timedelta
from typing import Any
from typing import Dict
from typing import Optional

from jose import JWTError
from jose import jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from ivms.config import get_settings
from ivms.exceptions import AuthenticationError
from ivms.exceptions import NotFoundError
from ivms.models.models import User
from ivms.utils.time import utc_now

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"

_pwd_context: Optional[CryptContext] = None


def _context() -> CryptContext:
    global _pwd_context
    if _pwd_context is None:
        _pwd_context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=get_settings().bcrypt_rounds,
        )
    return _pwd_context


def hash_password(password: str) -> str:
    return _context().hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return _context().verify(password, password_hash)


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


def create_access_token(user: User, expires_minutes: Optional[int] = None) -> str:
    settings = get_settings()
    minutes = expires_minutes if expires_minutes is not None else settings.jwt_expires_minutes
    payload = {
        "sub": str(user.id),
        "username": user.username,
        "department": user.department.value,
        "role": user.role.value,
        "exp": int((utc_now() + timedelta(minutes=minutes)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Return the verified claims or raise :class:`AuthenticationError`."""

    try:
        return jwt.decode(token, get_settings().jwt_secret, algorithms=[JWT_ALGORITHM])
    except JWTError as exc:
        raise AuthenticationError("Invalid token") from exc


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class AuthService:
    def __init__(self, db: Session):
        self.db = db

    def authenticate(self, username: str, password: str) -> Optional[User]:
        """Return the active user matching the credentials, else *None*."""

        from ivms.services.users import UserService  # users.py imports hash_password from here

        user = UserService(self.db).find_by_username(username)
        if user is None or not verify_password(password, user.password_hash):
            return None
        return user

    def login(self, username: str, password: str) -> Dict[str, Any]:
        user = self.authenticate(username, password)
        if user is None:
            logger.warning("Failed login for username %r", username)
            raise AuthenticationError("Invalid credentials")

        logger.info("User %s logged in", user.id)
        return {
            "access_token": create_access_token(user),
            "token_type": "bearer",
            "expires_in": get_settings().jwt_expires_minutes * 60,
            "user": user,
        }

    def reset_password(self, user_id: str, new_password: str) -> Dict[str, str]:
        user = self.db.query(User).filter(User.id == user_id).first()
        if user is None:
            raise NotFoundError("User", user_id, message="User not found")

        user.password_hash = hash_password(new_password)
        self.db.commit()
        logger.info("Password reset for user %s", user_id)
        return {"message": "Password reset successfully"}
