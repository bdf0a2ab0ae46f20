"""Uniqueness-guarded soft-delete CRUD shared by every resource service.

Subclasses declare the ORM ``model``, the natural key columns and, when the
resource does not use a plain ``is_active`` flag, how the *active partition*
is expressed.  The lifecycle is always the same:

* ``create`` rejects a natural key already held by an **active** row.
* ``find_one`` resolves soft-deleted rows too; only listings hide them.
* ``update`` re-checks uniqueness only for keys present in the payload.
* ``remove`` flips the soft-delete marker and never deletes the row.

Each natural key is also backed by a partial unique index on the active
partition.  A concurrent writer that slips past the read-check therefore
hits an ``IntegrityError`` at commit time which is reported as the same
:class:`~ivms.exceptions.ConflictError`.
"""

import logging
from typing import Any
from typing import Dict
from typing import Generic
from typing import List
from typing import Optional
from typing import Tuple
from typing import Type
from typing import TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ivms.exceptions import ConflictError
from ivms.exceptions import NotFoundError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")


class ResourceService(Generic[ModelT]):
    """Generic service for a *named, softly-deletable* resource."""

    model: Type[ModelT]
    label: str = "Resource"
    natural_keys: Tuple[str, ...] = ("name",)
    conflict_messages: Dict[str, str] = {}
    order_key: Optional[str] = None

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Soft-delete hooks (default: boolean ``is_active`` column)
    # ------------------------------------------------------------------

    def active_clause(self):
        return self.model.is_active.is_(True)

    def is_active(self, row: ModelT) -> bool:
        return bool(row.is_active)

    def create_defaults(self) -> Dict[str, Any]:
        return {"is_active": True}

    def deactivate_values(self) -> Dict[str, Any]:
        return {"is_active": False}

    def activate_values(self) -> Dict[str, Any]:
        return {"is_active": True}

    def before_update(self, row: ModelT, data: Dict[str, Any]) -> None:
        """Hook for resource specific update guards."""

    def before_remove(self, row: ModelT) -> None:
        """Hook for resource specific removal guards."""

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _order_column(self):
        return getattr(self.model, self.order_key or self.natural_keys[0])

    def find_all(self, include_inactive: bool = False) -> List[ModelT]:
        query = self.db.query(self.model)
        if not include_inactive:
            query = query.filter(self.active_clause())
        return query.order_by(self._order_column().asc()).all()

    def find_one(self, entity_id: str) -> ModelT:
        """Return the row by id, soft-deleted rows included."""

        row = self.db.query(self.model).filter(self.model.id == entity_id).first()
        if row is None:
            raise NotFoundError(self.label, entity_id)
        return row

    def find_active_for_dropdown(self) -> List[Dict[str, Any]]:
        key = self.natural_keys[0]
        column = getattr(self.model, key)
        rows = self.db.query(self.model.id, column).filter(self.active_clause()).order_by(column.asc()).all()
        return [{"id": row[0], key: row[1]} for row in rows]

    # ------------------------------------------------------------------
    # Uniqueness
    # ------------------------------------------------------------------

    def conflict_message(self, field: str) -> str:
        default = f"A {self.label.lower()} with this {field.replace('_', ' ')} already exists"
        return self.conflict_messages.get(field, default)

    def find_conflict(self, field: str, value: Any, exclude_id: Optional[str] = None) -> Optional[ModelT]:
        """Return an *active* row other than *exclude_id* holding ``field == value``."""

        query = self.db.query(self.model).filter(getattr(self.model, field) == value, self.active_clause())
        if exclude_id is not None:
            query = query.filter(self.model.id != exclude_id)
        return query.first()

    def ensure_unique(self, data: Dict[str, Any], exclude_id: Optional[str] = None) -> None:
        for field in self.natural_keys:
            value = data.get(field)
            if value is None:
                continue
            if self.find_conflict(field, value, exclude_id=exclude_id) is not None:
                logger.warning("%s conflict on %s=%r", self.label, field, value)
                raise ConflictError(self.conflict_message(field), field=field)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _commit(self, row: ModelT) -> ModelT:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            detail = str(exc.orig)
            if "unique" not in detail.lower():
                raise
            field = next((k for k in self.natural_keys if k in detail), self.natural_keys[0])
            logger.warning("%s unique index rejected write on %s", self.label, field)
            raise ConflictError(self.conflict_message(field), field=field) from exc
        self.db.refresh(row)
        return row

    def _apply(self, row: ModelT, values: Dict[str, Any]) -> None:
        for key, value in values.items():
            setattr(row, key, value)

    def create(self, data: Dict[str, Any]) -> ModelT:
        self.ensure_unique(data)

        values = self.create_defaults()
        values.update(data)
        row = self.model(**values)
        self.db.add(row)
        self._commit(row)
        logger.info("%s created: %s", self.label, row.id)
        return row

    def update(self, entity_id: str, data: Dict[str, Any]) -> ModelT:
        row = self.find_one(entity_id)
        self.before_update(row, data)

        if any(data.get(key) is not None for key in self.natural_keys):
            self.ensure_unique(data, exclude_id=entity_id)

        self._apply(row, data)
        self._commit(row)
        logger.info("%s updated: %s (%s)", self.label, entity_id, ", ".join(sorted(data)) or "no fields")
        return row

    def remove(self, entity_id: str) -> ModelT:
        row = self.find_one(entity_id)
        self.before_remove(row)

        self._apply(row, self.deactivate_values())
        self._commit(row)
        logger.info("%s soft-deleted: %s", self.label, entity_id)
        return row

    def restore(self, entity_id: str) -> ModelT:
        """Reactivate a soft-deleted row, re-checking its natural keys first."""

        row = self.find_one(entity_id)
        if self.is_active(row):
            return row

        self.ensure_unique({key: getattr(row, key) for key in self.natural_keys}, exclude_id=entity_id)
        self._apply(row, self.activate_values())
        self._commit(row)
        logger.info("%s restored: %s", self.label, entity_id)
        return row


__all__ = ["ResourceService"]
