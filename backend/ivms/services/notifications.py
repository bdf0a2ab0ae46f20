import logging
from datetime import timedelta
from typing import Any
from typing import Dict
from typing import Iterable
from typing import List
from typing import Mapping
from typing import Optional

from sqlalchemy.orm import Session

from ivms.exceptions import NotFoundError
from ivms.models.enums import CarStatus
from ivms.models.enums import Department
from ivms.models.enums import NotificationType
from ivms.models.models import Car
from ivms.models.models import Notification
from ivms.models.models import User
from ivms.services.notification_templates import render
from ivms.utils.time import utc_now_naive

logger = logging.getLogger(__name__)

# Departments alerted by the periodic fleet scan.
APPROACHING_DEPARTMENTS = (Department.GARAGE, Department.MAINTENANCE)
OVERDUE_DEPARTMENTS = (Department.GARAGE, Department.MAINTENANCE, Department.ADMIN)
WARRANTY_DEPARTMENTS = (Department.GARAGE, Department.ADMIN)


class NotificationService:
    """Per-user inbox rows plus department fan-out helpers."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(
        self,
        user_id: str,
        notification_type: NotificationType,
        title: str,
        message: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> Notification:
        row = Notification(
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        self.db.add(row)
        self.db.flush()
        return row

    def notify_user(
        self,
        user_id: str,
        notification_type: NotificationType,
        context: Mapping[str, Any] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> Notification:
        title, message = render(notification_type, context)
        return self.create(user_id, notification_type, title, message, entity_type, entity_id)

    def notify_departments(
        self,
        departments: Iterable[Department],
        notification_type: NotificationType,
        context: Mapping[str, Any] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        title: Optional[str] = None,
        message: Optional[str] = None,
    ) -> List[Notification]:
        """Notify every active member of *departments*; *title*/*message* override the template."""

        departments = tuple(departments)
        default_title, default_message = render(notification_type, context)
        rows = []
        for user_id in self.users_by_department(departments):
            rows.append(
                self.create(
                    user_id,
                    notification_type,
                    title or default_title,
                    message or default_message,
                    entity_type,
                    entity_id,
                )
            )
        logger.info(
            "Notified %d user(s) in %s of %s",
            len(rows),
            ",".join(d.value for d in departments),
            notification_type.value,
        )
        return rows

    def users_by_department(self, departments: Iterable[Department]) -> List[str]:
        rows = (
            self.db.query(User.id)
            .filter(User.department.in_(list(departments)), User.is_active.is_(True))
            .order_by(User.created_at.asc())
            .all()
        )
        return [row[0] for row in rows]

    # ------------------------------------------------------------------
    # Inbox (always scoped to the owner)
    # ------------------------------------------------------------------

    def list_for_user(
        self,
        user_id: str,
        *,
        is_read: Optional[bool] = None,
        notification_type: Optional[NotificationType] = None,
    ) -> List[Notification]:
        query = self.db.query(Notification).filter(Notification.user_id == user_id)
        if is_read is not None:
            query = query.filter(Notification.is_read.is_(is_read))
        if notification_type is not None:
            query = query.filter(Notification.type == notification_type)
        return query.order_by(Notification.created_at.desc()).all()

    def find_one(self, notification_id: str, user_id: str) -> Notification:
        row = self.db.query(Notification).filter(Notification.id == notification_id).first()
        # Someone else's notification is indistinguishable from a missing one.
        if row is None or row.user_id != user_id:
            raise NotFoundError("Notification", notification_id)
        return row

    def unread_count(self, user_id: str) -> int:
        return (
            self.db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .count()
        )

    def mark_read(self, notification_id: str, user_id: str) -> Notification:
        row = self.find_one(notification_id, user_id)
        row.is_read = True
        self.db.commit()
        self.db.refresh(row)
        return row

    def mark_all_read(self, user_id: str) -> int:
        count = (
            self.db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .update({Notification.is_read: True}, synchronize_session=False)
        )
        self.db.commit()
        return count

    def delete(self, notification_id: str, user_id: str) -> None:
        row = self.find_one(notification_id, user_id)
        self.db.delete(row)
        self.db.commit()

    # ------------------------------------------------------------------
    # Fleet scan
    # ------------------------------------------------------------------

    def scan_fleet(self, window_days: int = 30) -> Dict[str, int]:
        """Raise maintenance-due, overdue and warranty alerts for non-deleted cars.

        Returns the number of cars found per alert kind.
        """

        now = utc_now_naive()
        horizon = now + timedelta(days=window_days)
        cars = self.db.query(Car).filter(Car.status != CarStatus.DELETED).all()

        counts = {"approaching": 0, "overdue": 0, "warranty": 0}
        for car in cars:
            ctx = {"car_model": car.model, "license_plate": car.license_plate}
            due = car.next_maintenance_date
            if due is not None and due < now:
                counts["overdue"] += 1
                self.notify_departments(
                    OVERDUE_DEPARTMENTS, NotificationType.SCHEDULED_MAINTENANCE_OVERDUE, ctx, "Car", car.id
                )
            elif due is not None and due <= horizon:
                counts["approaching"] += 1
                self.notify_departments(
                    APPROACHING_DEPARTMENTS,
                    NotificationType.SCHEDULED_MAINTENANCE_APPROACHING,
                    {**ctx, "due_date": due.date().isoformat()},
                    "Car",
                    car.id,
                )

            expiry = car.warranty_expiry
            if expiry is not None and now <= expiry <= horizon:
                counts["warranty"] += 1
                self.notify_departments(
                    WARRANTY_DEPARTMENTS,
                    NotificationType.WARRANTY_EXPIRING,
                    {**ctx, "days_until_due": max((expiry - now).days, 1)},
                    "Car",
                    car.id,
                )

        self.db.commit()
        logger.info("Fleet scan raised alerts: %s", counts)
        return counts
