"""Audit logs routes."""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session, joinedload
from visita.core.database import get_db
from visita.core.deps import get_current_user
from visita.core.workflow import REVIEWER_ROLES
from visita.models.user import User
from visita.models.audit_log import AuditLog
from visita.schemas.audit_log import AuditLogResponse

router = APIRouter()


@router.get("/", response_model=List[AuditLogResponse])
def list_audit_logs(
    entity_type: Optional[str] = Query(None, description="Filter by entity type (e.g., Church, PendingChangeSet)"),
    entity_id: Optional[str] = Query(None, description="Filter by specific entity ID"),
    action: Optional[str] = Query(None, description="Filter by action (CREATE, UPDATE, STAGE, APPROVE...)"),
    user_id: Optional[int] = Query(None, description="Filter by user who made the change"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum number of results"),
    offset: int = Query(0, ge=0, description="Number of results to skip"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """List audit logs with optional filters. Reviewers only."""
    if current_user.role not in REVIEWER_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only reviewers can view the audit trail"
        )

    query = db.query(AuditLog).options(joinedload(AuditLog.user))

    # Apply filters
    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(AuditLog.entity_id == entity_id)
    if action:
        query = query.filter(AuditLog.action == action)
    if user_id is not None:
        query = query.filter(AuditLog.user_id == user_id)

    # Order by most recent first, then apply pagination
    return (
        query.order_by(AuditLog.timestamp.desc(), AuditLog.log_id.desc())
        .offset(offset).limit(limit).all()
    )


@router.get("/actions", response_model=List[str])
def get_actions(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Get all unique actions from audit logs."""
    result = db.query(AuditLog.action).distinct().all()
    return sorted(r[0] for r in result)
