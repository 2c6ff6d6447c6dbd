"""Notification schemas."""
from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel


class NotificationResponse(BaseModel):
    notification_id: int
    notification_type: str
    priority: str
    title: str
    message: str
    church_id: Optional[str] = None
    actor_id: Optional[int] = None
    related_data: Optional[Dict[str, Any]] = None
    created_at: datetime
    is_read: bool = False
