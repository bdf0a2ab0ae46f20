"""Explicit validation pass over pydantic schemas.

``validate_payload`` never raises for bad input; it returns the parsed model
(or *None*) together with a flat list of :class:`FieldError`.  FastAPI's own
``RequestValidationError`` is converted through :func:`field_errors_from` so
clients always receive the same error shape.
"""

from typing import Any
from typing import Iterable
from typing import List
from typing import Mapping
from typing import Optional
from typing import Tuple
from typing import Type
from typing import TypeVar

from pydantic import BaseModel
from pydantic import ValidationError

from ivms.exceptions import FieldError

SchemaT = TypeVar("SchemaT", bound=BaseModel)

# Leading ``loc`` entries FastAPI adds to say *where* the value came from.
_LOCATION_PREFIXES = {"body", "query", "path", "header", "cookie"}


def _field_name(loc: Iterable[Any]) -> str:
    parts = [str(p) for p in loc]
    if parts and parts[0] in _LOCATION_PREFIXES:
        parts = parts[1:]
    return ".".join(parts) or "payload"


def field_errors_from(errors: Iterable[Mapping[str, Any]]) -> List[FieldError]:
    """Translate pydantic/FastAPI error dicts into :class:`FieldError` objects."""

    return [
        FieldError(
            field=_field_name(err.get("loc", ())),
            message=err.get("msg", "Invalid value"),
            code=err.get("type", "invalid"),
        )
        for err in errors
    ]


def validate_payload(schema: Type[SchemaT], data: Any) -> Tuple[Optional[SchemaT], List[FieldError]]:
    if not isinstance(data, Mapping):
        return None, [FieldError(field="payload", message="Expected an object", code="type_error")]

    try:
        return schema.model_validate(data), []
    except ValidationError as exc:
        return None, field_errors_from(exc.errors())
