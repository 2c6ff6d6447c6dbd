"""Domain errors raised by the staging workflow.

Routes translate these into HTTP responses; the core never raises
HTTPException itself.
"""
from typing import Dict, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from visita.core.staging import StagingResult


class VisitaError(Exception):
    """Base class for workflow errors."""


class ChurchNotFound(VisitaError):
    def __init__(self, church_id: str):
        self.church_id = church_id
        super().__init__(f"Church '{church_id}' not found")


class ChurchValidationError(VisitaError):
    """Submitted profile data failed shape/type checks.

    `errors` maps each offending field to its messages.
    """

    def __init__(self, errors: Dict[str, List[str]]):
        self.errors = errors
        fields = ", ".join(sorted(errors))
        super().__init__(f"Invalid values for: {fields}")


class ChurchAlreadyExists(VisitaError):
    def __init__(self, church_id: str):
        self.church_id = church_id
        super().__init__(f"Church '{church_id}' already exists")


class EditNotPermitted(VisitaError):
    pass


class ReviewNotPermitted(VisitaError):
    pass


class InvalidTransition(VisitaError):
    pass


class TransitionNotPermitted(VisitaError):
    pass


class TransitionConditionFailed(VisitaError):
    pass


class PendingChangeSetNotFound(VisitaError):
    def __init__(self, church_id: str):
        self.church_id = church_id
        super().__init__(f"No open pending changes for church '{church_id}'")


class PendingChangeSetStateError(VisitaError):
    pass


class PersistenceFailure(VisitaError):
    """Nothing from the update was committed."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)


class PartialPersistenceFailure(VisitaError):
    """One half of a staged update was committed and the other was not.

    `failed_part` is "publish" or "stage". `result` describes what did get
    committed, so a caller can report it and resubmit the same data; the
    committed half diffs as unchanged on retry.
    """

    PUBLISH = "publish"
    STAGE = "stage"

    def __init__(
        self,
        result: "StagingResult",
        failed_part: str,
        failed_fields: List[str],
        cause: Optional[BaseException] = None,
    ):
        self.result = result
        self.failed_part = failed_part
        self.failed_fields = failed_fields
        self.cause = cause
        self.warnings: List[str] = []
        if failed_part == self.PUBLISH:
            message = "Changes were submitted for review, but publishing the other changes failed"
        else:
            message = "Changes were published, but submitting the other changes for review failed"
        super().__init__(message)


class NotificationFailure(VisitaError):
    """Delivery of a notification failed. Never fatal to the operation."""
