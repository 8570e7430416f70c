from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from readowl.models import NotificationType


class NotificationResponse(BaseModel):
    id: str
    type: NotificationType
    book_title: str
    book_slug: Optional[str] = None
    book_cover_url: Optional[str] = None
    chapter_title: Optional[str] = None
    actor_name: Optional[str] = None
    snippet: Optional[str] = None
    read: bool
    created_at: datetime

    class Config:
        from_attributes = True
