from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from app.models.notification import NotificationType


class NotificationOut(BaseModel):
    id: UUID
    type: NotificationType
    title: str
    message: str
    read: bool
    related_report_id: Optional[UUID]
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationListResponse(BaseModel):
    items: List[NotificationOut]
    unread_count: int


class AnnouncementRequest(BaseModel):
    title: str = Field(min_length=1)
    message: str = Field(min_length=1)
    role: Optional[str] = None


class AnnouncementResult(BaseModel):
    recipients: int
