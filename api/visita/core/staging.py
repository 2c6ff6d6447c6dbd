"""
Staged updates for church profiles.

Edits to a church that is not yet published are written straight to the
profile. Edits to an approved church are split per field:

- direct-publish fields (contact info, mass schedules, media...) are applied
  to the live profile immediately
- review-required fields (name, history, heritage classification...) are
  merged into the church's single open PendingChangeSet and stay invisible to
  the public until a reviewer approves them

Every call re-reads the church under a row lock and diffs against the live
profile overlaid with the open change set, so resubmitting the same data is a
no-op. The two halves are written in separate SAVEPOINTs of one transaction:
when only one half fails the other is still committed and the caller gets a
PartialPersistenceFailure naming the failed half.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from visita.core.audit import changes_for_audit, create_audit_log
from visita.core.change_diff import ChangedFields, diff_fields, values_equal
from visita.core.errors import (
    ChurchNotFound,
    EditNotPermitted,
    PartialPersistenceFailure,
    PersistenceFailure,
)
from visita.core.field_classification import get_field_labels, partition_fields
from visita.core.rls import can_modify_church
from visita.core.time import utc_now
from visita.core.workflow import requires_staging
from visita.models.church import Church
from visita.models.pending_change import PendingChangeSet, PendingChangeStatus
from visita.models.user import User
from visita.schemas.church_profile import validate_profile_fields
from visita.services.notifications import notify_safely

logger = logging.getLogger(__name__)


@dataclass
class StagingResult:
    """What an update did: published now, held for review, withdrawn."""
    church_id: str
    directly_published: List[str] = field(default_factory=list)
    staged_for_review: List[str] = field(default_factory=list)
    has_pending_changes: bool = False
    withdrawn_from_review: List[str] = field(default_factory=list)
    pending_change_set_id: Optional[int] = None

    @property
    def is_noop(self) -> bool:
        return not (self.directly_published or self.staged_for_review or self.withdrawn_from_review)


@dataclass
class UpdateOutcome:
    result: StagingResult
    warnings: List[str] = field(default_factory=list)


def load_church_for_update(db: Session, church_id: str) -> Church:
    """Re-read a church from the database and lock its row."""
    church = (
        db.query(Church)
        .populate_existing()
        .with_for_update()
        .filter(Church.church_id == church_id)
        .first()
    )
    if church is None:
        raise ChurchNotFound(church_id)
    return church


def get_open_change_set(db: Session, church_id: str, lock: bool = False) -> Optional[PendingChangeSet]:
    query = db.query(PendingChangeSet).populate_existing().filter(
        PendingChangeSet.church_id == church_id,
        PendingChangeSet.status == PendingChangeStatus.OPEN.value,
    )
    if lock:
        query = query.with_for_update()
    return query.first()


def apply_update(
    db: Session,
    church_id: str,
    submitted_fields: Mapping[str, Any],
    actor: User,
) -> StagingResult:
    """
    Apply a parish form submission to a church profile.

    Raises:
        ChurchValidationError: submitted values fail the profile schema
        ChurchNotFound: unknown church id
        EditNotPermitted: actor may not edit this church
        PartialPersistenceFailure: one of publish/stage committed, the other not
        PersistenceFailure: nothing was committed
    """
    submitted = validate_profile_fields(submitted_fields)

    church = load_church_for_update(db, church_id)
    if not can_modify_church(church, actor):
        db.rollback()
        raise EditNotPermitted(f"You do not have permission to edit church '{church_id}'")

    if not requires_staging(church.status):
        return _apply_direct(db, church, submitted, actor)
    return _apply_staged(db, church, submitted, actor)


def _apply_direct(db: Session, church: Church, submitted: Dict[str, Any], actor: User) -> StagingResult:
    """Unpublished churches have no public audience; write everything."""
    result = StagingResult(
        church_id=church.church_id,
        directly_published=list(submitted),
        has_pending_changes=church.has_pending_changes,
    )
    if not submitted:
        db.rollback()
        return result

    changed = diff_fields(church.fields or {}, submitted)
    church.fields = {**(church.fields or {}), **submitted}
    church.updated_at = utc_now()
    if changed:
        create_audit_log(
            db=db,
            entity_type="Church",
            entity_id=church.church_id,
            action="UPDATE",
            user_id=actor.user_id,
            changes={"status": church.status, "fields": changes_for_audit(changed)},
        )

    # Proposals still open from the published state are superseded by this write
    open_set = get_open_change_set(db, church.church_id, lock=True)
    if open_set is not None:
        result.withdrawn_from_review = _drop_proposals(db, church, open_set, list(submitted), actor)
        result.pending_change_set_id = open_set.pending_change_set_id if church.has_pending_changes else None

    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Direct update of church %s failed", church.church_id)
        raise PersistenceFailure("Saving the church profile failed", cause=exc) from exc

    result.has_pending_changes = church.has_pending_changes
    logger.info(
        "Church %s (%s) updated directly by user %s: %s",
        church.church_id, church.status, actor.user_id, ", ".join(submitted)
    )
    return result


def _drop_proposals(
    db: Session,
    church: Church,
    open_set: PendingChangeSet,
    fields: List[str],
    actor: User,
) -> List[str]:
    """Remove proposals for fields that were just written directly."""
    dropped = [f for f in open_set.changed_fields if f in fields]
    if not dropped:
        return []
    proposed = {k: v for k, v in open_set.proposed_changes.items() if k not in dropped}
    if proposed:
        open_set.proposed_changes = proposed
        open_set.original_values = {k: v for k, v in open_set.original_values.items() if k in proposed}
        open_set.changed_fields = [f for f in open_set.changed_fields if f in proposed]
        open_set.updated_at = utc_now()
    else:
        db.delete(open_set)
        church.has_pending_changes = False
    create_audit_log(
        db=db,
        entity_type="PendingChangeSet",
        entity_id=church.church_id,
        action="WITHDRAW",
        user_id=actor.user_id,
        changes={"withdrawn": dropped, "reason": "overwritten by direct edit"},
    )
    logger.info("Church %s: direct edit withdrew staged %s", church.church_id, dropped)
    return dropped


def _apply_staged(db: Session, church: Church, submitted: Dict[str, Any], actor: User) -> StagingResult:
    open_set = get_open_change_set(db, church.church_id, lock=True)
    live = dict(church.fields or {})
    proposed = dict(open_set.proposed_changes) if open_set else {}
    baseline = {**live, **proposed}

    changed = diff_fields(baseline, submitted)
    to_publish, review_fields = partition_fields(changed)

    # Setting a staged field back to its live value withdraws the proposal
    to_withdraw = [
        f for f in review_fields
        if f in proposed and values_equal(live.get(f), changed[f].new)
    ]
    to_stage = [f for f in review_fields if f not in to_withdraw]

    result = StagingResult(
        church_id=church.church_id,
        has_pending_changes=church.has_pending_changes,
        pending_change_set_id=open_set.pending_change_set_id if open_set else None,
    )
    if not changed:
        db.rollback()
        logger.debug("No changes for church %s; nothing to stage", church.church_id)
        return result

    publish_error: Optional[SQLAlchemyError] = None
    stage_error: Optional[SQLAlchemyError] = None

    if to_publish:
        try:
            with db.begin_nested():
                publish_fields(db, church, changed, to_publish, actor)
            result.directly_published = to_publish
        except SQLAlchemyError as exc:
            publish_error = exc
            logger.exception("Publishing %s for church %s failed", to_publish, church.church_id)

    if to_stage or to_withdraw:
        try:
            change_set = _stage_with_retry(db, church, changed, to_stage, to_withdraw, live, actor)
            result.staged_for_review = to_stage
            result.withdrawn_from_review = to_withdraw
            result.pending_change_set_id = change_set.pending_change_set_id if change_set else None
        except SQLAlchemyError as exc:
            stage_error = exc
            logger.exception("Staging %s for church %s failed", to_stage, church.church_id)

    published_ok = bool(to_publish) and publish_error is None
    staged_ok = bool(to_stage or to_withdraw) and stage_error is None
    if not (published_ok or staged_ok):
        db.rollback()
        raise PersistenceFailure("Saving the church update failed", cause=publish_error or stage_error)

    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Commit of staged update for church %s failed", church.church_id)
        raise PersistenceFailure("Saving the church update failed", cause=exc) from exc

    result.has_pending_changes = church.has_pending_changes

    if publish_error is not None:
        raise PartialPersistenceFailure(
            result, PartialPersistenceFailure.PUBLISH, to_publish, cause=publish_error
        )
    if stage_error is not None:
        raise PartialPersistenceFailure(
            result, PartialPersistenceFailure.STAGE, to_stage + to_withdraw, cause=stage_error
        )

    logger.info(
        "Church %s updated by user %s: published=%s staged=%s withdrawn=%s",
        church.church_id, actor.user_id, result.directly_published,
        result.staged_for_review, result.withdrawn_from_review
    )
    return result


def publish_fields(
    db: Session,
    church: Church,
    changed: ChangedFields,
    fields: List[str],
    actor: User,
) -> None:
    """Write direct-publish fields to the live profile."""
    church.fields = {**(church.fields or {}), **{f: changed[f].new for f in fields}}
    church.updated_at = utc_now()
    create_audit_log(
        db=db,
        entity_type="Church",
        entity_id=church.church_id,
        action="UPDATE",
        user_id=actor.user_id,
        changes={"published": changes_for_audit({f: changed[f] for f in fields})},
    )
    db.flush()


def _stage_with_retry(
    db: Session,
    church: Church,
    changed: ChangedFields,
    to_stage: List[str],
    to_withdraw: List[str],
    live: Dict[str, Any],
    actor: User,
) -> Optional[PendingChangeSet]:
    """Stage inside a savepoint; a lost race for the open set merges into the winner."""
    try:
        with db.begin_nested():
            open_set = get_open_change_set(db, church.church_id)
            return stage_fields(db, church, open_set, changed, to_stage, to_withdraw, live, actor)
    except IntegrityError:
        logger.warning("Concurrent pending change set for church %s; merging", church.church_id)
        with db.begin_nested():
            open_set = get_open_change_set(db, church.church_id, lock=True)
            return stage_fields(db, church, open_set, changed, to_stage, to_withdraw, live, actor)


def stage_fields(
    db: Session,
    church: Church,
    open_set: Optional[PendingChangeSet],
    changed: ChangedFields,
    to_stage: List[str],
    to_withdraw: List[str],
    live: Dict[str, Any],
    actor: User,
) -> Optional[PendingChangeSet]:
    """
    Merge review-required fields into the church's open change set.

    Creates the set if none is open. Later values overwrite earlier proposals
    for the same field. Returns the open set, or None when withdrawals
    emptied it.
    """
    now = utc_now()
    new_values = {f: changed[f].new for f in to_stage}

    if open_set is None:
        if not to_stage:
            return None
        open_set = PendingChangeSet(
            church_id=church.church_id,
            proposed_changes=new_values,
            original_values={f: live.get(f) for f in to_stage},
            changed_fields=list(to_stage),
            status=PendingChangeStatus.OPEN.value,
            submitted_by_id=actor.user_id,
            submitted_at=now,
            updated_at=now,
        )
        db.add(open_set)
        action = "STAGE"
    else:
        proposed = {k: v for k, v in open_set.proposed_changes.items() if k not in to_withdraw}
        proposed.update(new_values)
        originals = {k: v for k, v in open_set.original_values.items() if k in proposed}
        for f in to_stage:
            originals.setdefault(f, live.get(f))
        ordered = [f for f in open_set.changed_fields if f in proposed]
        ordered += [f for f in to_stage if f not in ordered]

        if not proposed:
            db.delete(open_set)
            church.has_pending_changes = False
            church.updated_at = now
            create_audit_log(
                db=db,
                entity_type="PendingChangeSet",
                entity_id=church.church_id,
                action="WITHDRAW",
                user_id=actor.user_id,
                changes={"withdrawn": to_withdraw},
            )
            db.flush()
            return None

        open_set.proposed_changes = proposed
        open_set.original_values = originals
        open_set.changed_fields = ordered
        open_set.submitted_by_id = actor.user_id
        open_set.updated_at = now
        if to_stage and open_set.forwarded_to_museum:
            # New content has not been seen by the chancery yet
            open_set.forwarded_to_museum = False
            open_set.forwarded_at = None
            open_set.forwarded_by_id = None
        action = "MERGE"

    church.has_pending_changes = True
    church.updated_at = now
    create_audit_log(
        db=db,
        entity_type="PendingChangeSet",
        entity_id=church.church_id,
        action=action,
        user_id=actor.user_id,
        changes={
            "staged": changes_for_audit({f: changed[f] for f in to_stage}),
            "withdrawn": to_withdraw,
        },
    )
    db.flush()
    return open_set


def describe_result(result: StagingResult) -> str:
    """Plain-language summary of an update for the submitting user."""
    parts = []
    if result.directly_published:
        parts.append("Published: " + ", ".join(get_field_labels(result.directly_published)) + ".")
    if result.staged_for_review:
        parts.append(
            "Submitted for review: " + ", ".join(get_field_labels(result.staged_for_review))
            + ". These changes will appear once approved."
        )
    if result.withdrawn_from_review:
        parts.append(
            "Withdrawn from review: " + ", ".join(get_field_labels(result.withdrawn_from_review)) + "."
        )
    if not parts:
        return "No changes were detected."
    return " ".join(parts)


def submit_church_update(
    db: Session,
    church_id: str,
    submitted_fields: Mapping[str, Any],
    actor: User,
    dispatcher=None,
) -> UpdateOutcome:
    """
    Apply an update and notify reviewers about anything staged.

    Notification problems are returned as warnings; they never undo the write.
    """
    try:
        result = apply_update(db, church_id, submitted_fields, actor)
    except PartialPersistenceFailure as exc:
        # The staged half is committed; a retry would diff it as unchanged
        exc.warnings = _notify_reviewers(db, exc.result, actor, dispatcher)
        raise
    return UpdateOutcome(result=result, warnings=_notify_reviewers(db, result, actor, dispatcher))


def _notify_reviewers(db: Session, result: StagingResult, actor: User, dispatcher) -> List[str]:
    if not result.staged_for_review:
        return []
    church = db.get(Church, result.church_id)
    return notify_safely(dispatcher, "notify_staged_changes", church, result, actor)
