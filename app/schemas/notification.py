from datetime import datetime
from typing import Optional

from app.schemas.base import CamelModel


class UserNotificationResponse(CamelModel):
    id: int
    type: str
    title: str
    body: Optional[str] = None
    course_id: Optional[int] = None
    course_title: Optional[str] = None
    created_at: datetime
    read: bool


class UnreadCountResponse(CamelModel):
    count: int
