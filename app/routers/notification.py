from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.core.dependencies import require_role
from app.models.user import User
from app.schemas.base import MessageResponse
from app.schemas.notification import UnreadCountResponse, UserNotificationResponse
from app.services.notification import UserNotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])

get_notification_owner = require_role("student", "teacher")


@router.get("", response_model=List[UserNotificationResponse])
def list_notifications(
    limit: int = Query(30),
    offset: int = Query(0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_notification_owner),
):
    limit = min(settings.notifications_max_page_size, max(1, limit))
    offset = max(0, offset)
    service = UserNotificationService(db)
    notifications = service.list_by_user(current_user.id, limit, offset)
    return [
        {
            "id": n.id,
            "type": n.type,
            "title": n.title,
            "body": n.body,
            "course_id": n.course_id,
            "course_title": n.course.title if n.course else None,
            "created_at": n.created_at,
            "read": n.read_at is not None,
        }
        for n in notifications
    ]


@router.get("/unread-count", response_model=UnreadCountResponse)
def get_unread_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_notification_owner),
):
    return {"count": UserNotificationService(db).get_unread_count(current_user.id)}


@router.post("/{notification_id}/read", response_model=MessageResponse)
def mark_notification_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_notification_owner),
):
    ok = UserNotificationService(db).mark_as_read(notification_id, current_user.id)
    if not ok:
        raise HTTPException(
            status_code=404, detail="Notification not found or access denied"
        )
    return {"message": "Marked as read"}
