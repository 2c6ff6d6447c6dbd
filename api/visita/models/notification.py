"""In-app notification model."""
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import String, Integer, DateTime, Text, JSON
from sqlalchemy.orm import Mapped, mapped_column
from visita.models.base import Base
from visita.core.time import utc_now


class Notification(Base):
    """A message addressed to roles and/or specific users.

    Recipients are matched by role (optionally narrowed to a diocese) or by
    user id.
    """
    __tablename__ = "notifications"

    notification_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    notification_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="medium")
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    recipient_roles: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    recipient_user_ids: Mapped[List[int]] = mapped_column(JSON, nullable=False, default=list)
    diocese: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    parish_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    church_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    actor_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    related_data: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    read_by: Mapped[List[int]] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
