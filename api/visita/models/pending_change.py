"""Pending Change Set - proposed edits to an approved church awaiting review."""
from __future__ import annotations

import enum
from datetime import datetime
from typing import Any, Dict, List, Optional, TYPE_CHECKING
from sqlalchemy import String, Integer, Boolean, DateTime, ForeignKey, Text, JSON, Index, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from visita.models.base import Base
from visita.core.time import utc_now

if TYPE_CHECKING:
    from visita.models.church import Church
    from visita.models.user import User


class PendingChangeStatus(str, enum.Enum):
    OPEN = "open"
    APPROVED = "approved"
    REJECTED = "rejected"


class PendingChangeSet(Base):
    """
    Review-required edits to an approved church.

    A church has at most one open set; later submissions merge into it, the
    latest value winning per field. Enforced by the partial unique index below
    as well as by the staging engine.
    """
    __tablename__ = "pending_change_sets"
    __table_args__ = (
        Index(
            "uq_pending_change_sets_open_church",
            "church_id",
            unique=True,
            sqlite_where=text("status = 'open'"),
            postgresql_where=text("status = 'open'"),
        ),
    )

    pending_change_set_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    church_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("churches.church_id", ondelete="CASCADE"), nullable=False, index=True
    )
    proposed_changes: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)  # field -> new value
    original_values: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)  # field -> live value
    changed_fields: Mapped[List[str]] = mapped_column(JSON, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PendingChangeStatus.OPEN.value, index=True
    )

    submitted_by_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.user_id"), nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)

    # Chancery forwarding of heritage changes to the museum researcher
    forwarded_to_museum: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    forwarded_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    forwarded_by_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.user_id"), nullable=True)

    reviewed_by_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.user_id"), nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    review_comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    church: Mapped["Church"] = relationship("Church", back_populates="pending_change_sets")
    submitted_by: Mapped["User"] = relationship("User", foreign_keys=[submitted_by_id])
    forwarded_by: Mapped[Optional["User"]] = relationship("User", foreign_keys=[forwarded_by_id])
    reviewed_by: Mapped[Optional["User"]] = relationship("User", foreign_keys=[reviewed_by_id])

    def __repr__(self):
        return f"<PendingChangeSet(id={self.pending_change_set_id}, church_id={self.church_id}, status={self.status})>"
