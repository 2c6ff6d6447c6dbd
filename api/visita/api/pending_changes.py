"""Pending change review routes."""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from visita.api.errors import http_error
from visita.core.database import get_db
from visita.core.deps import get_current_user, get_notification_dispatcher
from visita.core.errors import VisitaError
from visita.core.rls import can_view_church
from visita.core.staging import get_open_change_set
from visita.core.workflow import ActorRole
from visita.models.church import Church
from visita.models.pending_change import PendingChangeSet
from visita.models.user import User
from visita.schemas.pending_change import (
    PendingChangeSetResponse,
    ReviewAction,
    ReviewActionResponse,
)
from visita.services.notifications import NotificationDispatcher
from visita.services.pending_changes import (
    ReviewOutcome,
    approve_pending_changes,
    forward_pending_changes_to_museum,
    list_open_change_sets,
    reject_pending_changes,
)

router = APIRouter()


def _review_response(outcome: ReviewOutcome) -> ReviewActionResponse:
    return ReviewActionResponse(
        change_set=PendingChangeSetResponse.model_validate(outcome.change_set),
        has_pending_changes=outcome.church.has_pending_changes,
        warnings=outcome.warnings,
    )


@router.get("/pending-changes/", response_model=List[PendingChangeSetResponse])
def list_pending_changes(
    forwarded: Optional[bool] = Query(None, description="Only sets forwarded (or not) to the museum researcher"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Review queue of open change sets.

    Chancery Office sees its diocese; Museum Researchers default to the sets
    forwarded to them; Parish Secretaries see their own parish's.
    """
    if forwarded is None and current_user.role == ActorRole.MUSEUM_RESEARCHER.value:
        forwarded = True
    change_sets = list_open_change_sets(db, forwarded=forwarded)
    return [cs for cs in change_sets if can_view_church(cs.church, current_user)]


@router.get("/churches/{church_id}/pending-changes", response_model=Optional[PendingChangeSetResponse])
def get_church_pending_changes(
    church_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """The church's open change set, or null when nothing is awaiting review."""
    church = db.get(Church, church_id)
    if church is None or not can_view_church(church, current_user):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Church '{church_id}' not found"
        )
    return get_open_change_set(db, church_id)


@router.get("/churches/{church_id}/pending-changes/history", response_model=List[PendingChangeSetResponse])
def get_church_pending_change_history(
    church_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """All change sets of a church, newest first."""
    church = db.get(Church, church_id)
    if church is None or not can_view_church(church, current_user):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Church '{church_id}' not found"
        )
    return (
        db.query(PendingChangeSet)
        .filter(PendingChangeSet.church_id == church_id)
        .order_by(PendingChangeSet.submitted_at.desc(), PendingChangeSet.pending_change_set_id.desc())
        .all()
    )


@router.post("/churches/{church_id}/pending-changes/approve", response_model=ReviewActionResponse)
def approve_church_pending_changes(
    church_id: str,
    action: ReviewAction = ReviewAction(),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher)
):
    """Publish the staged edits of a church."""
    try:
        outcome = approve_pending_changes(db, church_id, current_user, action.comment, dispatcher)
    except VisitaError as exc:
        raise http_error(exc)
    return _review_response(outcome)


@router.post("/churches/{church_id}/pending-changes/reject", response_model=ReviewActionResponse)
def reject_church_pending_changes(
    church_id: str,
    action: ReviewAction = ReviewAction(),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher)
):
    """Discard the staged edits of a church; the live profile is unchanged."""
    try:
        outcome = reject_pending_changes(db, church_id, current_user, action.comment, dispatcher)
    except VisitaError as exc:
        raise http_error(exc)
    return _review_response(outcome)


@router.post("/churches/{church_id}/pending-changes/forward", response_model=ReviewActionResponse)
def forward_church_pending_changes(
    church_id: str,
    action: ReviewAction = ReviewAction(),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher)
):
    """Send staged edits of a heritage church to the museum researcher."""
    try:
        outcome = forward_pending_changes_to_museum(db, church_id, current_user, action.comment, dispatcher)
    except VisitaError as exc:
        raise http_error(exc)
    return _review_response(outcome)
