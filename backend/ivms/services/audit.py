import logging
from datetime import datetime
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.orm import selectinload

from ivms.config import get_settings
from ivms.models.enums import AuditAction
from ivms.models.enums import Department
from ivms.models.enums import Role
from ivms.models.models import AuditLog
from ivms.models.models import User
from ivms.utils.time import as_naive_utc

logger = logging.getLogger(__name__)


class AuditService:
    """Append-only audit trail with department scoped visibility."""

    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return self.db.query(AuditLog).options(selectinload(AuditLog.performed_by))

    def log(
        self,
        action: AuditAction,
        entity_type: str,
        entity_id: str,
        performed_by: User,
        details: Optional[Dict[str, Any]] = None,
        commit: bool = True,
    ) -> AuditLog:
        row = AuditLog(
            action=getattr(action, "value", action),
            entity_type=entity_type,
            entity_id=str(entity_id),
            performed_by_id=performed_by.id,
            department=performed_by.department,
            details=details,
        )
        self.db.add(row)
        if commit:
            self.db.commit()
        logger.debug("Audit %s %s/%s by %s", row.action, entity_type, entity_id, performed_by.id)
        return row

    def find_all(
        self,
        viewer: User,
        *,
        action: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        performed_by_id: Optional[str] = None,
        department: Optional[Department] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> List[AuditLog]:
        """Newest entries visible to *viewer*, capped at ``AUDIT_PAGE_SIZE``.

        Super admins see every department (optionally filtered); everybody
        else is pinned to their own department regardless of *department*.
        """

        query = self._query()
        if viewer.role != Role.SUPER_ADMIN:
            query = query.filter(AuditLog.department == viewer.department)
        elif department is not None:
            query = query.filter(AuditLog.department == department)

        if action:
            query = query.filter(AuditLog.action == action)
        if entity_type:
            query = query.filter(AuditLog.entity_type == entity_type)
        if entity_id:
            query = query.filter(AuditLog.entity_id == entity_id)
        if performed_by_id:
            query = query.filter(AuditLog.performed_by_id == performed_by_id)
        if start_date is not None:
            query = query.filter(AuditLog.timestamp >= as_naive_utc(start_date))
        if end_date is not None:
            query = query.filter(AuditLog.timestamp <= as_naive_utc(end_date))

        return query.order_by(AuditLog.timestamp.desc()).limit(get_settings().audit_page_size).all()

    def by_entity(self, entity_type: str, entity_id: str) -> List[AuditLog]:
        return (
            self._query()
            .filter(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id)
            .order_by(AuditLog.timestamp.desc())
            .all()
        )

    def recent(self, department: Department, limit: int = 10) -> List[AuditLog]:
        return (
            self._query()
            .filter(AuditLog.department == department)
            .order_by(AuditLog.timestamp.desc())
            .limit(limit)
            .all()
        )

    def by_user(self, user_id: str, limit: int = 50) -> List[AuditLog]:
        return (
            self._query()
            .filter(AuditLog.performed_by_id == user_id)
            .order_by(AuditLog.timestamp.desc())
            .limit(limit)
            .all()
        )

    def stats(
        self,
        start_date: datetime,
        end_date: datetime,
        department: Optional[Department] = None,
    ) -> List[Dict[str, Any]]:
        count = func.count(AuditLog.id)
        query = self.db.query(AuditLog.action, count).filter(
            AuditLog.timestamp >= as_naive_utc(start_date),
            AuditLog.timestamp <= as_naive_utc(end_date),
        )
        if department is not None:
            query = query.filter(AuditLog.department == department)
        rows = query.group_by(AuditLog.action).order_by(count.desc(), AuditLog.action.asc()).all()
        return [{"action": action, "count": total} for action, total in rows]
