"""Domain exceptions raised by the service layer.

Services never import FastAPI; :mod:`ivms.main` maps every subclass of
:class:`IVMSError` onto an HTTP status code via ``status_code``.
"""

from dataclasses import dataclass
from typing import List
from typing import Optional


class IVMSError(Exception):
    """Base exception for all IVMS domain errors."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(IVMSError):
    """Raised when a referenced identifier has no stored record."""

    status_code = 404

    def __init__(self, entity: str, entity_id: Optional[str] = None, message: Optional[str] = None):
        self.entity = entity
        self.entity_id = entity_id
        if message is None:
            message = f"{entity} with ID {entity_id} not found" if entity_id is not None else f"{entity} not found"
        super().__init__(message)


class ConflictError(IVMSError):
    """Raised when a write would violate an active-uniqueness invariant."""

    status_code = 409

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class BusinessRuleError(IVMSError):
    """Raised when a request is well-formed but not allowed in the current state."""

    status_code = 400


class AuthenticationError(IVMSError):
    """Raised when credentials or tokens are missing or invalid."""

    status_code = 401


class PermissionDeniedError(IVMSError):
    """Raised when the authorization policy denies an authenticated principal."""

    status_code = 403

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message)


@dataclass(frozen=True)
class FieldError:
    """One field-level validation failure."""

    field: str
    message: str
    code: str = "invalid"

    def as_dict(self) -> dict:
        return {"field": self.field, "message": self.message, "code": self.code}


class ValidationFailedError(IVMSError):
    """Schema validation failure; FastAPI request errors are converted to it."""

    status_code = 422

    def __init__(self, errors: List[FieldError]):
        self.errors = list(errors)
        fields = ", ".join(sorted({e.field for e in self.errors})) or "payload"
        super().__init__(f"Validation failed for: {fields}")


__all__ = [
    "IVMSError",
    "NotFoundError",
    "ConflictError",
    "BusinessRuleError",
    "AuthenticationError",
    "PermissionDeniedError",
    "FieldError",
    "ValidationFailedError",
]
