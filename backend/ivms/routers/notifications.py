"""Per-user notification inbox routes.

Rows are only ever visible to their owner; another user's notification id
answers 404 exactly like a missing one.
"""

import logging
from typing import List
from typing import Optional

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Query
from fastapi import status
from sqlalchemy.orm import Session

from ivms.auth.policy import AUTHENTICATED
from ivms.auth.policy import SUPER_ADMIN_ONLY
from ivms.constants import NOTIFICATIONS_PREFIX
from ivms.database import get_db
from ivms.dependencies.auth import require
from ivms.models.enums import NotificationType
from ivms.schemas.schemas import FleetScanOut
from ivms.schemas.schemas import MessageOut
from ivms.schemas.schemas import NotificationOut
from ivms.schemas.schemas import UnreadCount
from ivms.services.notifications import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix=NOTIFICATIONS_PREFIX, tags=["notifications"])


@router.get("", response_model=List[NotificationOut])
async def list_notifications(
    is_read: Optional[bool] = Query(None),
    type: Optional[NotificationType] = Query(None),
    db: Session = Depends(get_db),
    current_user=Depends(require(AUTHENTICATED)),
):
    return NotificationService(db).list_for_user(current_user.id, is_read=is_read, notification_type=type)


@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(db: Session = Depends(get_db), current_user=Depends(require(AUTHENTICATED))):
    return {"count": NotificationService(db).unread_count(current_user.id)}


@router.post("/read-all", response_model=MessageOut)
async def mark_all_read(db: Session = Depends(get_db), current_user=Depends(require(AUTHENTICATED))):
    count = NotificationService(db).mark_all_read(current_user.id)
    return {"message": f"Marked {count} notification(s) as read"}


# ---------------------------------------------------------------------------
# POST /notifications/scan
# ---------------------------------------------------------------------------


@router.post("/scan", response_model=FleetScanOut)
async def scan_fleet(
    days: int = Query(30, ge=1),
    db: Session = Depends(get_db),
    current_user=Depends(require(SUPER_ADMIN_ONLY)),
):
    """Raise maintenance-due, overdue and warranty alerts for the whole fleet."""
    return NotificationService(db).scan_fleet(window_days=days)


# ---------------------------------------------------------------------------
# /notifications/{id}
# ---------------------------------------------------------------------------


@router.get("/{notification_id}", response_model=NotificationOut)
async def get_notification(
    notification_id: str,
    db: Session = Depends(get_db),
    current_user=Depends(require(AUTHENTICATED)),
):
    return NotificationService(db).find_one(notification_id, current_user.id)


@router.patch("/{notification_id}/read", response_model=NotificationOut)
async def mark_read(
    notification_id: str,
    db: Session = Depends(get_db),
    current_user=Depends(require(AUTHENTICATED)),
):
    return NotificationService(db).mark_read(notification_id, current_user.id)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: str,
    db: Session = Depends(get_db),
    current_user=Depends(require(AUTHENTICATED)),
):
    NotificationService(db).delete(notification_id, current_user.id)
    return None
