"""FastAPI dependencies that expose the *current user* and policy guards.

The development bypass vs. JWT validation lives in strategy classes under
:pymod:`ivms.auth.strategy`; the role/department decision is the pure
:func:`ivms.auth.policy.is_allowed`.
"""

from __future__ import annotations

import logging

from fastapi import Depends
from fastapi import Request
from sqlalchemy.orm import Session

from ivms.auth.policy import AccessRule
from ivms.auth.policy import is_allowed
from ivms.auth.strategy import DevAuthStrategy
from ivms.auth.strategy import JWTAuthStrategy
from ivms.config import get_settings
from ivms.database import get_db
from ivms.exceptions import AuthenticationError
from ivms.exceptions import PermissionDeniedError

logger = logging.getLogger(__name__)

_settings = get_settings()

# Tests patch this flag to toggle dev <-> JWT behaviour.
AUTH_DISABLED: bool = _settings.auth_disabled  # noqa: N816 – module level switch


_strategy_cache: dict[str, object] = {}


def _get_strategy():  # noqa: D401 – internal helper
    """Return *singleton* strategy instance based on ``AUTH_DISABLED`` flag."""

    if AUTH_DISABLED:
        if "dev" not in _strategy_cache:
            _strategy_cache["dev"] = DevAuthStrategy()
        return _strategy_cache["dev"]

    if "jwt" not in _strategy_cache:
        _strategy_cache["jwt"] = JWTAuthStrategy()
    return _strategy_cache["jwt"]


def get_current_user(request: Request, db: Session = Depends(get_db)):
    """Return the authenticated *User* row or raise **401**."""

    if "Authorization" not in request.headers and not AUTH_DISABLED:
        raise AuthenticationError("Not authenticated")
    return _get_strategy().get_current_user(request, db)


def require(rule: AccessRule):
    """Build a dependency that admits only principals satisfying *rule*.

    Usage::

        @router.post("/", dependencies=[Depends(require(GARAGE_DEPT))])
        # or, when the handler needs the user:
        current_user: User = Depends(require(GARAGE_DEPT))
    """

    def dependency(current_user=Depends(get_current_user)):
        if not is_allowed(current_user, rule):
            logger.warning(
                "Denied %s (%s/%s) for rule %s",
                getattr(current_user, "id", None),
                getattr(current_user, "role", None),
                getattr(current_user, "department", None),
                rule,
            )
            raise PermissionDeniedError()
        return current_user

    return dependency


__all__ = ["get_current_user", "require", "AUTH_DISABLED"]
