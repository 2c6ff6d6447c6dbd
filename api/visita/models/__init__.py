"""Models package."""
from visita.models.base import Base
from visita.models.user import User
from visita.models.church import Church
from visita.models.pending_change import PendingChangeSet, PendingChangeStatus
from visita.models.church_status_history import ChurchStatusHistory
from visita.models.audit_log import AuditLog
from visita.models.notification import Notification

__all__ = [
    "Base",
    "User",
    "Church",
    "PendingChangeSet",
    "PendingChangeStatus",
    "ChurchStatusHistory",
    "AuditLog",
    "Notification",
]
