"""Profile field classification routes."""
from typing import List
from fastapi import APIRouter, Depends

from visita.core.deps import get_current_user
from visita.core.field_classification import classification_table
from visita.models.user import User
from visita.schemas.church import FieldClassificationResponse

router = APIRouter()


@router.get("/", response_model=List[FieldClassificationResponse])
def list_field_classifications(current_user: User = Depends(get_current_user)):
    """Which profile fields publish immediately and which wait for review."""
    return classification_table()
