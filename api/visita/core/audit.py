"""Audit trail helpers."""
from typing import Any, Dict, Mapping, Optional
from sqlalchemy.orm import Session
from visita.models.audit_log import AuditLog
from visita.core.change_diff import FieldChange


def create_audit_log(
    db: Session,
    entity_type: str,
    entity_id: Any,
    action: str,
    user_id: int,
    changes: Optional[dict] = None
):
    """Create an audit log entry."""
    audit_log = AuditLog(
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        user_id=user_id,
        changes=changes
    )
    db.add(audit_log)
    # Note: commit happens with the main transaction


def changes_for_audit(changes: Mapping[str, FieldChange]) -> Dict[str, Dict[str, Any]]:
    """Render field changes as {"field": {"old": ..., "new": ...}}."""
    return {field: {"old": c.old, "new": c.new} for field, c in changes.items()}
