"""Pending change set schemas."""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class PendingChangeSetResponse(BaseModel):
    pending_change_set_id: int
    church_id: str
    proposed_changes: Dict[str, Any]
    original_values: Dict[str, Any]
    changed_fields: List[str]
    status: str
    submitted_by_id: int
    submitted_at: datetime
    updated_at: datetime
    forwarded_to_museum: bool
    forwarded_at: Optional[datetime] = None
    forwarded_by_id: Optional[int] = None
    reviewed_by_id: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    review_comment: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ReviewAction(BaseModel):
    comment: Optional[str] = Field(None, max_length=2000)


class ReviewActionResponse(BaseModel):
    change_set: PendingChangeSetResponse
    has_pending_changes: bool
    warnings: List[str] = []
