import logging
from typing import Callable, List, Optional

from sqlalchemy.orm import Session, joinedload
from sqlalchemy.sql import func

from app.models.notification import UserNotification

logger = logging.getLogger(__name__)


class UserNotificationService:
    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        user_id: int,
        title: str,
        body: Optional[str] = None,
        type: str = "info",
        course_id: Optional[int] = None,
    ) -> UserNotification:
        notification = UserNotification(
            user_id=user_id,
            type=type,
            title=title or "",
            body=body,
            course_id=course_id,
        )
        self.db.add(notification)
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def list_by_user(
        self, user_id: int, limit: int = 30, offset: int = 0
    ) -> List[UserNotification]:
        return (
            self.db.query(UserNotification)
            .options(joinedload(UserNotification.course))
            .filter(UserNotification.user_id == user_id)
            .order_by(UserNotification.created_at.desc(), UserNotification.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    def get_unread_count(self, user_id: int) -> int:
        return (
            self.db.query(UserNotification)
            .filter(
                UserNotification.user_id == user_id,
                UserNotification.read_at.is_(None),
            )
            .count()
        )

    def mark_as_read(self, notification_id: int, user_id: int) -> bool:
        notification = (
            self.db.query(UserNotification)
            .filter(
                UserNotification.id == notification_id,
                UserNotification.user_id == user_id,
            )
            .first()
        )
        if not notification:
            return False
        if notification.read_at is None:
            notification.read_at = func.now()
            self.db.commit()
        return True


def record_user_notification(session_factory: Callable[[], Session], user_id: int, **fields):
    """
    Create a notification in its own short-lived session.

    Used for post-commit side effects that run after the request session is gone.
    """
    db = session_factory()
    try:
        notification = UserNotificationService(db).create(user_id, **fields)
        logger.info(f"Notification {notification.id} created for user {user_id}")
        return notification
    finally:
        db.close()
