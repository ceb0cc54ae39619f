"""Pydantic schemas for user API endpoints."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import ConfigDict
from pydantic.alias_generators import to_camel, to_snake

from .auth import CamelModel


class ProfileUpdateRequest(CamelModel):
    """
    Request schema for profile updates.

    Unknown keys are kept so that attempts to touch protected fields can be
    reported explicitly instead of being silently dropped.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar: Optional[str] = None
    business_name: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None

    def changes(self) -> Dict[str, Any]:
        declared = type(self).model_fields
        fields = {name: getattr(self, name) for name in self.model_fields_set if name in declared}
        for key, value in (self.model_extra or {}).items():
            fields[to_snake(key)] = value
        return fields


class ProfileResponse(CamelModel):
    email: str
    username: str
    first_name: str
    last_name: str
    avatar: Optional[str] = None
    business_name: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    provider: str
    is_email_verified: bool
    active: bool
    created_at: datetime
    updated_at: datetime


class UserProfileEnvelope(CamelModel):
    success: bool = True
    message: Optional[str] = None
    user_profile: ProfileResponse


class AdminUserResponse(ProfileResponse):
    id: int
    roles: List[str]


class UserListResponse(CamelModel):
    success: bool = True
    count: int
    number_of_pages: int
    users: List[AdminUserResponse]
