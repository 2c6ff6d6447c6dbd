"""Church creation and status transitions with their side effects."""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from visita.core.audit import create_audit_log
from visita.core.errors import (
    ChurchAlreadyExists,
    EditNotPermitted,
    InvalidTransition,
    PersistenceFailure,
    TransitionConditionFailed,
    TransitionNotPermitted,
)
from visita.core.heritage import is_heritage_church
from visita.core.staging import load_church_for_update
from visita.core.time import utc_now
from visita.core.workflow import (
    ActorRole,
    ChurchStatus,
    WorkflowContext,
    check_transition,
    missing_required_fields,
)
from visita.models.church import Church
from visita.models.church_status_history import ChurchStatusHistory
from visita.models.user import User
from visita.schemas.church_profile import PROFILE_SCHEMA_VERSION, validate_profile_fields
from visita.services.notifications import NotificationDispatcher, notify_safely

logger = logging.getLogger(__name__)


@dataclass
class TransitionOutcome:
    church: Church
    from_status: str
    to_status: str
    warnings: List[str] = field(default_factory=list)


def create_church(
    db: Session,
    church_id: str,
    parish_id: str,
    diocese: str,
    fields: Mapping[str, Any],
    actor: User,
) -> Church:
    """
    Create a draft church profile.

    Parish secretaries create their own parish's church; the chancery office
    creates churches in its diocese.
    """
    profile = validate_profile_fields(fields)

    if actor.role == ActorRole.PARISH_SECRETARY.value:
        if actor.parish_id != parish_id or actor.diocese != diocese:
            raise EditNotPermitted("Parish secretaries can only create their own parish's church")
    elif actor.role == ActorRole.CHANCERY_OFFICE.value:
        if actor.diocese != diocese:
            raise EditNotPermitted("The chancery office can only create churches in its diocese")
    else:
        raise EditNotPermitted("Your role cannot create church profiles")

    if db.get(Church, church_id) is not None:
        raise ChurchAlreadyExists(church_id)

    now = utc_now()
    church = Church(
        church_id=church_id,
        parish_id=parish_id,
        diocese=diocese,
        status=ChurchStatus.DRAFT.value,
        profile_schema_version=PROFILE_SCHEMA_VERSION,
        fields=profile,
        has_pending_changes=False,
        created_by_id=actor.user_id,
        created_at=now,
        updated_at=now,
    )
    db.add(church)
    create_audit_log(
        db=db,
        entity_type="Church",
        entity_id=church_id,
        action="CREATE",
        user_id=actor.user_id,
        changes={"parish_id": parish_id, "diocese": diocese, "fields": sorted(profile)},
    )
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Creating church %s failed", church_id)
        raise PersistenceFailure("Creating the church profile failed", cause=exc) from exc
    db.refresh(church)
    logger.info("Church %s created by user %s", church_id, actor.user_id)
    return church


def _can_act_on(church: Church, actor: User) -> bool:
    if actor.role == ActorRole.PARISH_SECRETARY.value:
        return actor.parish_id == church.parish_id
    if actor.role == ActorRole.CHANCERY_OFFICE.value:
        return actor.diocese == church.diocese
    return actor.role == ActorRole.MUSEUM_RESEARCHER.value


def build_context(church: Church, target_status: str, actor: User, note: Optional[str] = None) -> WorkflowContext:
    fields: Dict[str, Any] = church.fields or {}
    return WorkflowContext(
        church_id=church.church_id,
        current_status=church.status,
        target_status=target_status,
        role=actor.role,
        note=note,
        heritage_flagged=is_heritage_church(church),
        missing_required_fields=missing_required_fields(fields),
    )


def transition_church_status(
    db: Session,
    church_id: str,
    target_status: str,
    actor: User,
    note: Optional[str] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> TransitionOutcome:
    """
    Move a church along the review workflow.

    Raises:
        ChurchNotFound, EditNotPermitted, InvalidTransition,
        TransitionNotPermitted, TransitionConditionFailed, PersistenceFailure
    """
    target_status = getattr(target_status, "value", target_status)
    church = load_church_for_update(db, church_id)
    if not _can_act_on(church, actor):
        db.rollback()
        raise EditNotPermitted(f"You do not have access to church '{church_id}'")

    try:
        check_transition(build_context(church, target_status, actor, note))
    except (InvalidTransition, TransitionNotPermitted, TransitionConditionFailed):
        db.rollback()
        raise

    from_status = church.status
    now = utc_now()
    church.status = target_status
    church.updated_at = now
    if target_status == ChurchStatus.PENDING.value:
        church.submitted_at = now
    elif actor.role != ActorRole.PARISH_SECRETARY.value:
        church.reviewed_by_id = actor.user_id
        church.reviewed_at = now
        church.review_notes = note
        if target_status == ChurchStatus.APPROVED.value:
            church.approved_at = now

    db.add(ChurchStatusHistory(
        church_id=church_id,
        from_status=from_status,
        to_status=target_status,
        changed_by_id=actor.user_id,
        changed_by_role=actor.role,
        changed_at=now,
        note=note,
    ))
    create_audit_log(
        db=db,
        entity_type="Church",
        entity_id=church_id,
        action="STATUS_CHANGE",
        user_id=actor.user_id,
        changes={"status": {"old": from_status, "new": target_status}, "note": note},
    )
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Status change of church %s failed", church_id)
        raise PersistenceFailure("Saving the status change failed", cause=exc) from exc

    logger.info(
        "Church %s moved %s -> %s by user %s (%s)",
        church_id, from_status, target_status, actor.user_id, actor.role
    )
    warnings = notify_safely(
        dispatcher, "notify_status_change", church, from_status, target_status, actor, note=note
    )
    return TransitionOutcome(church=church, from_status=from_status, to_status=target_status, warnings=warnings)
