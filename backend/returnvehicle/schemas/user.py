"""
Pydantic schemas for identity and admin moderation.
"""

from typing import Optional

from pydantic import BaseModel, Field

from returnvehicle.models.status import UserRole, UserStatus
from returnvehicle.schemas.common import REQUEST_CONFIG, RESPONSE_CONFIG, Page


class UserResponse(BaseModel):
    model_config = RESPONSE_CONFIG

    uid: str
    email: str
    display_name: str
    photo_url: str
    role: str
    status: str


class UserEnvelope(BaseModel):
    user: UserResponse


class SetRoleRequest(BaseModel):
    model_config = REQUEST_CONFIG

    role: str
    display_name: Optional[str] = Field(None, max_length=255)
    photo_url: Optional[str] = Field(None, max_length=1024)


class AdminUserUpdate(BaseModel):
    model_config = REQUEST_CONFIG

    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None


class UserListResponse(Page[UserResponse]):
    pass
