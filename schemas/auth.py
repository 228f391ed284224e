"""Authentication schemas for the identity-provider session."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from .conversations import CamelModel


class SessionClaims(BaseModel):
    """Claims carried by the identity provider's signed session token."""
    sub: str
    exp: int
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None


class UserResponse(CamelModel):
    """Schema for the current user."""
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
