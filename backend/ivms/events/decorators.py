"""Decorators that attach audit rows and domain events to router handlers."""

import functools
import logging
from datetime import datetime
from enum import Enum
from typing import Any
from typing import Callable
from typing import Dict
from typing import Optional

from ivms.models.enums import AuditAction
from ivms.services.audit import AuditService

from .event_bus import EventType
from .event_bus import event_bus

logger = logging.getLogger(__name__)


def row_to_event_data(result: Any) -> Dict[str, Any]:
    """Flatten an ORM row (or pydantic model / dict) into a JSON friendly dict."""

    if hasattr(result, "__table__"):
        event_data = {}
        for column in result.__table__.columns:
            value = getattr(result, column.name)
            if isinstance(value, datetime):
                value = value.isoformat()
            elif isinstance(value, Enum):
                value = value.value
            event_data[column.name] = value
    elif hasattr(result, "model_dump"):
        event_data = result.model_dump()
    elif isinstance(result, dict):
        event_data = dict(result)
    else:
        event_data = dict(vars(result))

    event_data.pop("_sa_instance_state", None)
    return event_data


def publish_event(event_type: EventType):
    """Publish *event_type* with the handler's return value after a successful call.

    The acting user (``current_user`` keyword argument) is added as
    ``actor_id`` so subscribers can tell who triggered the transition.
    """

    def decorator(func: Callable):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            result = await func(*args, **kwargs)

            if result is not None:
                event_data = row_to_event_data(result)
                actor = kwargs.get("current_user")
                event_data["actor_id"] = getattr(actor, "id", None)
                event_data["event_type"] = event_type
                await event_bus.publish(event_type, event_data)

            return result

        return wrapper

    return decorator


def audited(
    action: AuditAction,
    entity_type: str,
    details: Optional[Callable[[Any], Dict[str, Any]]] = None,
):
    """Record an audit row for every *successful* call of the wrapped handler.

    The handler must receive ``db`` and ``current_user`` as keyword arguments
    (the usual FastAPI dependencies) and return the affected row.  The audit
    write happens in the request session; a failure there is logged and
    rolled back but never turns a completed mutation into an error.
    """

    def decorator(func: Callable):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            result = await func(*args, **kwargs)

            db = kwargs.get("db")
            user = kwargs.get("current_user")
            entity_id = getattr(result, "id", None) or kwargs.get("entity_id")
            if db is None or user is None or entity_id is None:
                logger.warning("Skipping audit %s: missing db, user or entity id", action)
                return result

            try:
                AuditService(db).log(
                    action,
                    entity_type,
                    entity_id,
                    user,
                    details=details(result) if details else None,
                )
            except Exception:
                db.rollback()
                logger.exception("Failed to write audit log %s for %s/%s", action, entity_type, entity_id)

            return result

        return wrapper

    return decorator
