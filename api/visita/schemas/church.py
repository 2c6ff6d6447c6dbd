"""Church request/response schemas."""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

from visita.core.staging import StagingResult, describe_result

Diocese = Literal["tagbilaran", "talibon"]


class ChurchCreate(BaseModel):
    church_id: str = Field(..., min_length=1, max_length=64)
    parish_id: str = Field(..., min_length=1, max_length=64)
    diocese: Diocese
    # Checked against ChurchProfileFields by the service
    fields: Dict[str, Any] = {}


class ChurchResponse(BaseModel):
    church_id: str
    parish_id: str
    diocese: str
    status: str
    profile_schema_version: int
    fields: Dict[str, Any]
    has_pending_changes: bool
    created_by_id: int
    created_at: datetime
    updated_at: datetime
    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    reviewed_by_id: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class StagingResponse(BaseModel):
    """Outcome of a profile edit as shown to the parish secretary."""
    church_id: str
    directly_published: List[str] = []
    staged_for_review: List[str] = []
    withdrawn_from_review: List[str] = []
    has_pending_changes: bool
    pending_change_set_id: Optional[int] = None
    message: str
    warnings: List[str] = []

    @classmethod
    def from_result(cls, result: StagingResult, warnings: Optional[List[str]] = None) -> "StagingResponse":
        return cls(
            church_id=result.church_id,
            directly_published=result.directly_published,
            staged_for_review=result.staged_for_review,
            withdrawn_from_review=result.withdrawn_from_review,
            has_pending_changes=result.has_pending_changes,
            pending_change_set_id=result.pending_change_set_id,
            message=describe_result(result),
            warnings=list(warnings or []),
        )


class PartialFailureResponse(StagingResponse):
    failed_part: str
    failed_fields: List[str]
    detail: str


class TransitionRequest(BaseModel):
    target_status: Literal["draft", "pending", "heritage_review", "approved"]
    note: Optional[str] = Field(None, max_length=2000)


class TransitionResponse(BaseModel):
    church: ChurchResponse
    from_status: str
    to_status: str
    warnings: List[str] = []


class NextAction(BaseModel):
    action: str
    label: str
    description: str
    requires_note: bool


class NextActionsResponse(BaseModel):
    church_id: str
    status: str
    status_label: str
    has_pending_changes: bool
    actions: List[NextAction]


class StatusHistoryResponse(BaseModel):
    history_id: int
    church_id: str
    from_status: str
    to_status: str
    changed_by_id: int
    changed_by_role: str
    changed_at: datetime
    note: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class FieldClassificationResponse(BaseModel):
    field: str
    label: str
    tier: str
