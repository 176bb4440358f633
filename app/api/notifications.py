# app/api/notifications.py

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.auth import get_current_user
from app.core.permissions import require_roles
from app.core.roles import ROLE_ADMIN
from app.models.user import User
from app.schemas.notification import (
    AnnouncementRequest,
    AnnouncementResult,
    NotificationListResponse,
    NotificationOut,
)
from app.services import notification_service as notifications

router = APIRouter(tags=["Notifications"])


@router.get("/notifications", response_model=NotificationListResponse)
def list_notifications(
    unread_only: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return {
        "items": notifications.list_notifications(db, current_user.id, unread_only),
        "unread_count": notifications.unread_count(db, current_user.id),
    }


@router.get("/notifications/unread-count")
def unread_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return {"unread_count": notifications.unread_count(db, current_user.id)}


@router.post("/notifications/read-all")
def mark_all_as_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return {"updated": notifications.mark_all_as_read(db, current_user.id)}


@router.post("/notifications/{notification_id}/read", response_model=NotificationOut)
def mark_as_read(
    notification_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return notifications.mark_as_read(db, notification_id, current_user.id)


@router.delete("/notifications/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(
    notification_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    notifications.delete_notification(db, notification_id, current_user.id)
    return None


# --------------------------------------------------
# ADMIN ANNOUNCEMENTS
# --------------------------------------------------
@router.post("/admin/notifications/announce", response_model=AnnouncementResult)
def announce(
    payload: AnnouncementRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles([ROLE_ADMIN])),
):
    sent = notifications.send_system_announcement(
        db, payload.title, payload.message, role=payload.role
    )
    return {"recipients": sent}
