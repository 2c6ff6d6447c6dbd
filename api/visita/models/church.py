"""Church profile model."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, TYPE_CHECKING
from sqlalchemy import String, Integer, Boolean, DateTime, ForeignKey, Text, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from visita.models.base import Base
from visita.core.time import utc_now
from visita.core.workflow import ChurchStatus

if TYPE_CHECKING:
    from visita.models.user import User
    from visita.models.pending_change import PendingChangeSet
    from visita.models.church_status_history import ChurchStatusHistory


class Church(Base):
    """The live (public-facing) church profile.

    `fields` holds the profile attributes described by ChurchProfileFields.
    Review-required edits to an approved church never land here until a
    reviewer approves the pending change set.
    """
    __tablename__ = "churches"

    church_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    parish_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    diocese: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ChurchStatus.DRAFT.value, index=True
    )
    profile_schema_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    fields: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    has_pending_changes: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, index=True,
        comment="True while an open pending change set exists"
    )

    created_by_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.user_id"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    reviewed_by_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.user_id"), nullable=True
    )
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    review_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    created_by: Mapped["User"] = relationship("User", foreign_keys=[created_by_id])
    reviewed_by: Mapped[Optional["User"]] = relationship("User", foreign_keys=[reviewed_by_id])
    pending_change_sets: Mapped[List["PendingChangeSet"]] = relationship(
        "PendingChangeSet", back_populates="church", cascade="all, delete-orphan",
        order_by="PendingChangeSet.submitted_at"
    )
    status_history: Mapped[List["ChurchStatusHistory"]] = relationship(
        "ChurchStatusHistory", back_populates="church", cascade="all, delete-orphan",
        order_by="ChurchStatusHistory.changed_at"
    )

    @property
    def name(self) -> Optional[str]:
        return (self.fields or {}).get("name")

    def __repr__(self):
        return f"<Church(id={self.church_id}, status={self.status}, pending={self.has_pending_changes})>"
