"""
Reviewer resolution of pending change sets.

The chancery office of the church's diocese resolves open sets. Changes to a
heritage church can be forwarded to the museum researcher, who then resolves
them instead.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from visita.core.audit import create_audit_log
from visita.core.errors import (
    PendingChangeSetNotFound,
    PendingChangeSetStateError,
    PersistenceFailure,
    ReviewNotPermitted,
)
from visita.core.heritage import is_heritage_profile
from visita.core.staging import get_open_change_set, load_church_for_update
from visita.core.time import utc_now
from visita.core.workflow import ActorRole
from visita.models.church import Church
from visita.models.pending_change import PendingChangeSet, PendingChangeStatus
from visita.models.user import User
from visita.services.notifications import NotificationDispatcher, notify_safely

logger = logging.getLogger(__name__)


@dataclass
class ReviewOutcome:
    change_set: PendingChangeSet
    church: Church
    warnings: List[str] = field(default_factory=list)


def _check_reviewer(church: Church, change_set: PendingChangeSet, actor: User) -> None:
    if change_set.forwarded_to_museum:
        if actor.role != ActorRole.MUSEUM_RESEARCHER.value:
            raise ReviewNotPermitted(
                "These changes were forwarded for heritage validation; only the museum researcher can resolve them"
            )
        return
    if actor.role != ActorRole.CHANCERY_OFFICE.value or actor.diocese != church.diocese:
        raise ReviewNotPermitted("Only the chancery office of this diocese can resolve these changes")


def _load_open_set(db: Session, church_id: str):
    church = load_church_for_update(db, church_id)
    change_set = get_open_change_set(db, church_id, lock=True)
    if change_set is None:
        db.rollback()
        raise PendingChangeSetNotFound(church_id)
    return church, change_set


def _commit(db: Session, what: str, church_id: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("%s of pending changes for church %s failed", what, church_id)
        raise PersistenceFailure(f"{what} of pending changes failed", cause=exc) from exc


def approve_pending_changes(
    db: Session,
    church_id: str,
    actor: User,
    comment: Optional[str] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> ReviewOutcome:
    """Publish every proposed value of the church's open change set."""
    church, change_set = _load_open_set(db, church_id)
    try:
        _check_reviewer(church, change_set, actor)
    except ReviewNotPermitted:
        db.rollback()
        raise

    now = utc_now()
    proposed = dict(change_set.proposed_changes)
    live = dict(church.fields or {})
    church.fields = {**live, **proposed}
    church.has_pending_changes = False
    church.updated_at = now

    change_set.status = PendingChangeStatus.APPROVED.value
    change_set.reviewed_by_id = actor.user_id
    change_set.reviewed_at = now
    change_set.review_comment = comment

    create_audit_log(
        db=db,
        entity_type="PendingChangeSet",
        entity_id=church_id,
        action="APPROVE",
        user_id=actor.user_id,
        changes={
            "pending_change_set_id": change_set.pending_change_set_id,
            "fields": {f: {"old": live.get(f), "new": v} for f, v in proposed.items()},
            "comment": comment,
        },
    )
    _commit(db, "Approval", church_id)
    logger.info(
        "Pending changes %s for church %s approved by user %s",
        change_set.pending_change_set_id, church_id, actor.user_id
    )

    warnings = notify_safely(
        dispatcher, "notify_pending_changes_resolved",
        church, True, list(change_set.changed_fields), actor, change_set.submitted_by_id, comment,
    )
    return ReviewOutcome(change_set=change_set, church=church, warnings=warnings)


def reject_pending_changes(
    db: Session,
    church_id: str,
    actor: User,
    comment: Optional[str] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> ReviewOutcome:
    """
    Close the open change set without touching the live profile.

    The church keeps its status; the parish can submit new edits afterwards.
    """
    church, change_set = _load_open_set(db, church_id)
    try:
        _check_reviewer(church, change_set, actor)
    except ReviewNotPermitted:
        db.rollback()
        raise

    now = utc_now()
    change_set.status = PendingChangeStatus.REJECTED.value
    change_set.reviewed_by_id = actor.user_id
    change_set.reviewed_at = now
    change_set.review_comment = comment
    church.has_pending_changes = False
    church.updated_at = now

    create_audit_log(
        db=db,
        entity_type="PendingChangeSet",
        entity_id=church_id,
        action="REJECT",
        user_id=actor.user_id,
        changes={
            "pending_change_set_id": change_set.pending_change_set_id,
            "fields": list(change_set.changed_fields),
            "comment": comment,
        },
    )
    _commit(db, "Rejection", church_id)
    logger.info(
        "Pending changes %s for church %s rejected by user %s",
        change_set.pending_change_set_id, church_id, actor.user_id
    )

    warnings = notify_safely(
        dispatcher, "notify_pending_changes_resolved",
        church, False, list(change_set.changed_fields), actor, change_set.submitted_by_id, comment,
    )
    return ReviewOutcome(change_set=change_set, church=church, warnings=warnings)


def forward_pending_changes_to_museum(
    db: Session,
    church_id: str,
    actor: User,
    note: Optional[str] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> ReviewOutcome:
    """Hand the open change set of a heritage church to the museum researcher."""
    church, change_set = _load_open_set(db, church_id)

    if actor.role != ActorRole.CHANCERY_OFFICE.value or actor.diocese != church.diocese:
        db.rollback()
        raise ReviewNotPermitted("Only the chancery office of this diocese can forward changes")
    if change_set.forwarded_to_museum:
        db.rollback()
        raise PendingChangeSetStateError("These changes were already forwarded to the museum researcher")
    # Judge heritage on the profile as it would read once approved
    if not is_heritage_profile({**(church.fields or {}), **change_set.proposed_changes}):
        db.rollback()
        raise PendingChangeSetStateError(
            "Only changes to heritage churches can be forwarded to the museum researcher"
        )

    now = utc_now()
    change_set.forwarded_to_museum = True
    change_set.forwarded_at = now
    change_set.forwarded_by_id = actor.user_id
    change_set.updated_at = now

    create_audit_log(
        db=db,
        entity_type="PendingChangeSet",
        entity_id=church_id,
        action="FORWARD",
        user_id=actor.user_id,
        changes={
            "pending_change_set_id": change_set.pending_change_set_id,
            "fields": list(change_set.changed_fields),
            "note": note,
        },
    )
    _commit(db, "Forwarding", church_id)
    logger.info(
        "Pending changes %s for church %s forwarded to museum by user %s",
        change_set.pending_change_set_id, church_id, actor.user_id
    )

    warnings = notify_safely(
        dispatcher, "notify_pending_changes_forwarded", church, list(change_set.changed_fields), actor,
    )
    return ReviewOutcome(change_set=change_set, church=church, warnings=warnings)


def list_open_change_sets(db: Session, forwarded: Optional[bool] = None) -> List[PendingChangeSet]:
    """Open sets, oldest first; `forwarded` narrows to museum or chancery queues."""
    query = db.query(PendingChangeSet).filter(
        PendingChangeSet.status == PendingChangeStatus.OPEN.value
    )
    if forwarded is not None:
        query = query.filter(PendingChangeSet.forwarded_to_museum.is_(forwarded))
    return query.order_by(PendingChangeSet.submitted_at).all()
