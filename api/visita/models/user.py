"""User model."""
from typing import Optional
from sqlalchemy import String, Integer, Boolean
from sqlalchemy.orm import Mapped, mapped_column
from visita.models.base import Base
from visita.core.workflow import ActorRole


class User(Base):
    """A staff member acting on church profiles.

    Identity is established by the external identity provider; this table only
    records role and jurisdiction.
    """
    __tablename__ = "users"

    user_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(
        String(50), nullable=False, default=ActorRole.PARISH_SECRETARY.value)
    diocese: Mapped[Optional[str]] = mapped_column(
        String(20), nullable=True,
        comment="tagbilaran or talibon; NULL for museum staff serving both"
    )
    parish_id: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True, index=True,
        comment="Parish a parish secretary belongs to"
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self):
        return f"<User(id={self.user_id}, email={self.email}, role={self.role})>"
