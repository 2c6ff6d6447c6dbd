"""Church Status History - audit trail of workflow status changes."""
from __future__ import annotations

from datetime import datetime
from typing import Optional, TYPE_CHECKING
from sqlalchemy import Integer, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from visita.models.base import Base
from visita.core.time import utc_now

if TYPE_CHECKING:
    from visita.models.church import Church
    from visita.models.user import User


class ChurchStatusHistory(Base):
    """One row per executed status transition."""
    __tablename__ = "church_status_history"

    history_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    church_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("churches.church_id", ondelete="CASCADE"),
        nullable=False, index=True
    )
    from_status: Mapped[str] = mapped_column(String(20), nullable=False)
    to_status: Mapped[str] = mapped_column(String(20), nullable=False)
    changed_by_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.user_id"), nullable=False)
    changed_by_role: Mapped[str] = mapped_column(String(50), nullable=False)
    changed_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utc_now, index=True
    )
    note: Mapped[Optional[str]] = mapped_column(
        Text, nullable=True,
        comment="Reviewer explanation; required for send-back and re-evaluation"
    )

    # Relationships
    church: Mapped["Church"] = relationship("Church", back_populates="status_history")
    changed_by: Mapped["User"] = relationship("User")
