"""User schemas."""
from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr


class UserResponse(BaseModel):
    user_id: int
    email: EmailStr
    full_name: str
    role: str
    diocese: Optional[str] = None
    parish_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
