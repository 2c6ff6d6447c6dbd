"""
Church profile status state machine.

    draft -> pending -> heritage_review -> approved
                |                          ^
                +--------------------------+

Heritage review may be skipped (pending -> approved) only when the church has
no heritage significance. Edits to an approved church do not change its status;
they go through visita.core.staging instead. Reviewers can send a submission
back to draft with a note.
"""
import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from visita.core.change_diff import normalize_empty
from visita.core.errors import InvalidTransition, TransitionConditionFailed, TransitionNotPermitted


class ChurchStatus(str, enum.Enum):
    DRAFT = "draft"
    PENDING = "pending"
    HERITAGE_REVIEW = "heritage_review"
    APPROVED = "approved"


class ActorRole(str, enum.Enum):
    PARISH_SECRETARY = "parish_secretary"
    CHANCERY_OFFICE = "chancery_office"
    MUSEUM_RESEARCHER = "museum_researcher"


REVIEWER_ROLES = (ActorRole.CHANCERY_OFFICE.value, ActorRole.MUSEUM_RESEARCHER.value)

# Fields a profile needs before it can be submitted for review
REQUIRED_FOR_SUBMISSION = ("name", "municipality", "location")


@dataclass
class WorkflowContext:
    """Everything needed to judge one attempted status change."""
    church_id: str
    current_status: str
    target_status: str
    role: str
    note: Optional[str] = None
    heritage_flagged: bool = False
    missing_required_fields: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class WorkflowTransition:
    from_status: ChurchStatus
    to_status: ChurchStatus
    required_roles: Tuple[str, ...]
    description: str
    action_label: str
    requires_note: bool = False
    condition: Optional[Callable[[WorkflowContext], bool]] = None
    condition_message: str = "Transition conditions not met"


def _not_heritage(context: WorkflowContext) -> bool:
    return not context.heritage_flagged


def _has_note(context: WorkflowContext) -> bool:
    return bool(context.note and context.note.strip())


def _profile_complete(context: WorkflowContext) -> bool:
    return not context.missing_required_fields


WORKFLOW_TRANSITIONS: Tuple[WorkflowTransition, ...] = (
    WorkflowTransition(
        from_status=ChurchStatus.DRAFT,
        to_status=ChurchStatus.PENDING,
        required_roles=(ActorRole.PARISH_SECRETARY.value,),
        description="Submit church profile for initial review",
        action_label="Submit for Review",
        condition=_profile_complete,
        condition_message="Complete the required profile fields before submitting",
    ),
    WorkflowTransition(
        from_status=ChurchStatus.PENDING,
        to_status=ChurchStatus.PENDING,
        required_roles=(ActorRole.PARISH_SECRETARY.value,),
        description="Re-submit an updated church profile",
        action_label="Resubmit for Review",
        condition=_profile_complete,
        condition_message="Complete the required profile fields before submitting",
    ),
    WorkflowTransition(
        from_status=ChurchStatus.PENDING,
        to_status=ChurchStatus.APPROVED,
        required_roles=(ActorRole.CHANCERY_OFFICE.value,),
        description="Approve church directly (non-heritage churches)",
        action_label="Approve & Publish",
        condition=_not_heritage,
        condition_message="Heritage churches must be validated by the museum researcher first",
    ),
    WorkflowTransition(
        from_status=ChurchStatus.PENDING,
        to_status=ChurchStatus.HERITAGE_REVIEW,
        required_roles=(ActorRole.CHANCERY_OFFICE.value,),
        description="Forward to museum researcher for heritage validation",
        action_label="Send to Museum Researcher",
    ),
    WorkflowTransition(
        from_status=ChurchStatus.HERITAGE_REVIEW,
        to_status=ChurchStatus.APPROVED,
        required_roles=(ActorRole.MUSEUM_RESEARCHER.value,),
        description="Approve after heritage validation",
        action_label="Approve & Publish",
    ),
    WorkflowTransition(
        from_status=ChurchStatus.APPROVED,
        to_status=ChurchStatus.HERITAGE_REVIEW,
        required_roles=(ActorRole.CHANCERY_OFFICE.value,),
        description="Send published church for heritage re-evaluation",
        action_label="Re-evaluate Heritage",
        requires_note=True,
        condition=_has_note,
        condition_message="A note explaining the re-evaluation is required",
    ),
    WorkflowTransition(
        from_status=ChurchStatus.PENDING,
        to_status=ChurchStatus.DRAFT,
        required_roles=(ActorRole.CHANCERY_OFFICE.value,),
        description="Send submission back to the parish for revision",
        action_label="Request Revisions",
        requires_note=True,
        condition=_has_note,
        condition_message="Feedback for the parish is required",
    ),
    WorkflowTransition(
        from_status=ChurchStatus.HERITAGE_REVIEW,
        to_status=ChurchStatus.DRAFT,
        required_roles=(ActorRole.CHANCERY_OFFICE.value, ActorRole.MUSEUM_RESEARCHER.value),
        description="Send submission back to the parish for revision",
        action_label="Request Revisions",
        requires_note=True,
        condition=_has_note,
        condition_message="Feedback for the parish is required",
    ),
)

STATUS_INFO: Dict[str, Dict[str, str]] = {
    ChurchStatus.DRAFT.value: {
        "label": "Draft",
        "color": "gray",
        "description": "Being prepared by the parish",
    },
    ChurchStatus.PENDING.value: {
        "label": "Pending Review",
        "color": "yellow",
        "description": "Awaiting Chancery Office review",
    },
    ChurchStatus.HERITAGE_REVIEW.value: {
        "label": "Heritage Review",
        "color": "orange",
        "description": "Under review by Museum Researcher",
    },
    ChurchStatus.APPROVED.value: {
        "label": "Published",
        "color": "green",
        "description": "Church profile is live and public",
    },
}


def _by_status() -> Dict[str, List[WorkflowTransition]]:
    grouped: Dict[str, List[WorkflowTransition]] = {}
    for transition in WORKFLOW_TRANSITIONS:
        grouped.setdefault(transition.from_status.value, []).append(transition)
    return grouped


_TRANSITIONS_BY_STATUS = _by_status()


def _value(status: Any) -> str:
    return status.value if isinstance(status, enum.Enum) else str(status)


def get_valid_transitions(from_status: Any, role: Any) -> List[WorkflowTransition]:
    """Transitions out of `from_status` that `role` may perform."""
    role_value = _value(role)
    return [
        t for t in _TRANSITIONS_BY_STATUS.get(_value(from_status), [])
        if role_value in t.required_roles
    ]


def find_transition(from_status: Any, to_status: Any) -> Optional[WorkflowTransition]:
    """The transition between two statuses regardless of role, if one exists."""
    target = _value(to_status)
    for transition in _TRANSITIONS_BY_STATUS.get(_value(from_status), []):
        if transition.to_status.value == target:
            return transition
    return None


def check_transition(context: WorkflowContext) -> WorkflowTransition:
    """
    Validate an attempted status change and return its transition.

    Raises:
        InvalidTransition: no rule connects the two statuses
        TransitionNotPermitted: the rule exists but not for this role
        TransitionConditionFailed: the rule's condition (note, heritage) fails
    """
    current, target, role = _value(context.current_status), _value(context.target_status), _value(context.role)
    transition = find_transition(current, target)
    if transition is None:
        raise InvalidTransition(f"Transition from '{current}' to '{target}' is not allowed")
    if role not in transition.required_roles:
        raise TransitionNotPermitted(
            f"Role '{role}' is not authorized to move a church from '{current}' to '{target}'"
        )
    if transition.condition is not None and not transition.condition(context):
        message = transition.condition_message
        if transition.condition is _profile_complete:
            message += ": " + ", ".join(context.missing_required_fields)
        raise TransitionConditionFailed(message)
    return transition


def is_transition_valid(context: WorkflowContext) -> Tuple[bool, Optional[str]]:
    """Non-raising variant of check_transition: (valid, reason)."""
    try:
        check_transition(context)
    except (InvalidTransition, TransitionNotPermitted, TransitionConditionFailed) as exc:
        return False, str(exc)
    return True, None


def get_next_actions(current_status: Any, role: Any) -> List[Dict[str, Any]]:
    """Actions a role can take from the current status, for action menus."""
    return [
        {
            "action": t.to_status.value,
            "label": t.action_label,
            "description": t.description,
            "requires_note": t.requires_note,
        }
        for t in get_valid_transitions(current_status, role)
    ]


def get_status_info(status: Any) -> Dict[str, str]:
    value = _value(status)
    return STATUS_INFO.get(value, {"label": value, "color": "gray", "description": "Unknown status"})


def requires_staging(status: Any) -> bool:
    """Only published churches hold edits back for review."""
    return _value(status) == ChurchStatus.APPROVED.value


def missing_required_fields(fields: Dict[str, Any]) -> List[str]:
    """Required submission fields that are absent or empty in a profile."""
    return [f for f in REQUIRED_FOR_SUBMISSION if normalize_empty(fields.get(f)) is None]
