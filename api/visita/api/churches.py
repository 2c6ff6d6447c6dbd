"""Church profile routes."""
import logging
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from visita.api.errors import http_error
from visita.core.database import get_db
from visita.core.deps import get_current_user, get_notification_dispatcher
from visita.core.errors import PartialPersistenceFailure, VisitaError
from visita.core.rls import apply_church_rls, can_view_church
from visita.core.staging import submit_church_update
from visita.core.workflow import get_next_actions, get_status_info
from visita.models.church import Church
from visita.models.church_status_history import ChurchStatusHistory
from visita.models.user import User
from visita.schemas.church import (
    ChurchCreate,
    ChurchResponse,
    NextActionsResponse,
    PartialFailureResponse,
    StagingResponse,
    StatusHistoryResponse,
    TransitionRequest,
    TransitionResponse,
)
from visita.services.church_workflow import create_church, transition_church_status
from visita.services.notifications import NotificationDispatcher

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_visible_church(db: Session, church_id: str, user: User) -> Church:
    church = db.get(Church, church_id)
    if church is None or not can_view_church(church, user):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Church '{church_id}' not found"
        )
    return church


@router.post("/", response_model=ChurchResponse, status_code=status.HTTP_201_CREATED)
def create_church_profile(
    church_data: ChurchCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Create a draft church profile."""
    try:
        return create_church(
            db,
            church_id=church_data.church_id,
            parish_id=church_data.parish_id,
            diocese=church_data.diocese,
            fields=church_data.fields,
            actor=current_user,
        )
    except VisitaError as exc:
        raise http_error(exc)


@router.get("/", response_model=List[ChurchResponse])
def list_churches(
    church_status: Optional[str] = Query(None, alias="status", description="Filter by workflow status"),
    diocese: Optional[str] = Query(None, description="Filter by diocese"),
    has_pending_changes: Optional[bool] = Query(None, description="Only churches with (or without) pending edits"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    List churches.

    Row-Level Security:
    - Parish Secretary: their own parish's church
    - Chancery Office: churches of their diocese
    - Museum Researcher: all churches
    """
    query = apply_church_rls(db.query(Church), current_user)
    if church_status:
        query = query.filter(Church.status == church_status)
    if diocese:
        query = query.filter(Church.diocese == diocese)
    if has_pending_changes is not None:
        query = query.filter(Church.has_pending_changes.is_(has_pending_changes))
    return query.order_by(Church.church_id).offset(offset).limit(limit).all()


@router.get("/{church_id}", response_model=ChurchResponse)
def get_church(
    church_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Get the live profile. Staged edits are not included."""
    return _get_visible_church(db, church_id, current_user)


@router.patch(
    "/{church_id}",
    response_model=StagingResponse,
    responses={207: {"model": PartialFailureResponse}},
)
def update_church(
    church_id: str,
    fields: Dict[str, Any] = Body(..., description="Profile fields to change"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher)
):
    """
    Submit profile edits.

    For published churches, direct-publish fields go live immediately and
    review-required fields are held in the church's pending change set.
    When only one of the two could be saved the response is 207 and names
    the part that failed; resubmitting the same form is safe.
    """
    try:
        outcome = submit_church_update(db, church_id, fields, current_user, dispatcher=dispatcher)
    except PartialPersistenceFailure as exc:
        body = PartialFailureResponse(
            **StagingResponse.from_result(exc.result, exc.warnings).model_dump(),
            failed_part=exc.failed_part,
            failed_fields=exc.failed_fields,
            detail=str(exc),
        )
        logger.warning("Partial save of church %s: %s failed", church_id, exc.failed_part)
        return JSONResponse(status_code=207, content=jsonable_encoder(body))
    except VisitaError as exc:
        raise http_error(exc)
    return StagingResponse.from_result(outcome.result, outcome.warnings)


@router.get("/{church_id}/next-actions", response_model=NextActionsResponse)
def get_church_next_actions(
    church_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Status actions the current user can take on this church."""
    church = _get_visible_church(db, church_id, current_user)
    return NextActionsResponse(
        church_id=church.church_id,
        status=church.status,
        status_label=get_status_info(church.status)["label"],
        has_pending_changes=church.has_pending_changes,
        actions=get_next_actions(church.status, current_user.role),
    )


@router.post("/{church_id}/transitions", response_model=TransitionResponse)
def transition_church(
    church_id: str,
    request: TransitionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher)
):
    """Submit, forward, approve or send back a church profile."""
    try:
        outcome = transition_church_status(
            db, church_id, request.target_status, current_user,
            note=request.note, dispatcher=dispatcher,
        )
    except VisitaError as exc:
        raise http_error(exc)
    return TransitionResponse(
        church=ChurchResponse.model_validate(outcome.church),
        from_status=outcome.from_status,
        to_status=outcome.to_status,
        warnings=outcome.warnings,
    )


@router.get("/{church_id}/status-history", response_model=List[StatusHistoryResponse])
def get_status_history(
    church_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Status changes of a church, oldest first."""
    _get_visible_church(db, church_id, current_user)
    return (
        db.query(ChurchStatusHistory)
        .filter(ChurchStatusHistory.church_id == church_id)
        .order_by(ChurchStatusHistory.changed_at, ChurchStatusHistory.history_id)
        .all()
    )
