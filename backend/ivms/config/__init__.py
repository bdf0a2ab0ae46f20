"""Centralised configuration helper.

This module eliminates scattered ``os.getenv`` calls by exposing a **single**
process-wide :class:`Settings` instance (retrieved via :func:`get_settings`).
Values are read from the environment after *python-dotenv* has loaded the
project ``.env`` file (``.env.test`` when ``NODE_ENV=test``).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

# ``_REPO_ROOT`` points to the top-level repository directory.  This file is
# located at ``backend/ivms/config/__init__.py``.

_REPO_ROOT = Path(__file__).resolve().parents[3]


def _truthy(value: str | None) -> bool:  # noqa: D401 – small helper
    """Return *True* when *value* looks like an affirmative string."""

    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    return int(value)


@dataclass
class Settings:  # noqa: D401 – simple data container
    """Lightweight settings container populated from environment variables."""

    # Runtime flags -----------------------------------------------------
    testing: bool
    auth_disabled: bool

    # Auth --------------------------------------------------------------
    jwt_secret: str
    jwt_expires_minutes: int
    bcrypt_rounds: int

    # Database ---------------------------------------------------------
    database_url: str

    # Misc
    log_level: str
    environment: Any
    allowed_cors_origins: str

    # Domain defaults ---------------------------------------------------
    audit_page_size: int
    low_stock_threshold: int

    # Helper for tests to override values at runtime -------------------
    def override(self, **kwargs: Any) -> None:  # pragma: no cover – test util
        for key, value in kwargs.items():
            if not hasattr(self, key):  # pragma: no cover – safety
                raise AttributeError(f"Settings has no attribute '{key}'")
            setattr(self, key, value)


# ---------------------------------------------------------------------------
# Singleton accessor – values loaded only once per interpreter
# ---------------------------------------------------------------------------


def _load_settings() -> Settings:  # noqa: D401 – helper
    """Populate :class:`Settings` from environment variables."""

    node_env = os.getenv("NODE_ENV", "development")

    env_path = _REPO_ROOT / ".env"
    if node_env == "test" and (_REPO_ROOT / ".env.test").exists():
        env_path = _REPO_ROOT / ".env.test"

    if env_path.exists():
        # Values already exported by the shell (or by the test-suite) win.
        load_dotenv(env_path, override=False)

    testing = _truthy(os.getenv("TESTING"))

    return Settings(
        testing=testing,
        auth_disabled=_truthy(os.getenv("AUTH_DISABLED")),
        jwt_secret=os.getenv("JWT_SECRET", "dev-secret"),
        jwt_expires_minutes=_int(os.getenv("JWT_EXPIRES_MINUTES"), 480),
        bcrypt_rounds=_int(os.getenv("BCRYPT_ROUNDS"), 12),
        database_url=os.getenv("DATABASE_URL", ""),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        environment=os.getenv("ENVIRONMENT"),
        allowed_cors_origins=os.getenv("ALLOWED_CORS_ORIGINS", ""),
        audit_page_size=_int(os.getenv("AUDIT_PAGE_SIZE"), 100),
        low_stock_threshold=_int(os.getenv("LOW_STOCK_THRESHOLD"), 5),
    )


# ------------------------------------------------------------------
# Runtime validation – fail fast when *required* secrets are missing.
# ------------------------------------------------------------------


def _validate_required(settings: Settings) -> None:  # noqa: D401 – helper
    """Abort startup in production when mandatory configuration is missing."""

    if settings.testing:
        return

    if (settings.environment or "").lower() != "production":
        return

    missing_vars = []

    if not settings.database_url:
        missing_vars.append("DATABASE_URL")

    if settings.auth_disabled:
        missing_vars.append("AUTH_DISABLED must be off in production")

    weak = settings.jwt_secret.strip() in {"", "dev-secret"} or len(settings.jwt_secret) < 16
    if weak:
        missing_vars.append("JWT_SECRET (must be >=16 chars, not 'dev-secret')")

    if missing_vars:
        raise RuntimeError("Missing or invalid configuration: " + ", ".join(missing_vars))


_settings_cache: Settings | None = None


def get_settings() -> Settings:  # noqa: D401 – accessor
    """Return cached :class:`Settings` instance (lazy-loaded)."""

    global _settings_cache
    if _settings_cache is None:
        _settings_cache = _load_settings()
        _validate_required(_settings_cache)
    return _settings_cache


__all__ = ["Settings", "get_settings"]
