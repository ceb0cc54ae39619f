"""Pydantic schemas for authentication endpoints."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, field_validator
from pydantic.alias_generators import to_camel

from ....core.exceptions import ValidationError
from ....domain.validation import validate_name, validate_username


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRequest(CamelModel):
    """Request schema for user registration. Presence is checked by the auth flow."""

    email: Optional[EmailStr] = None
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    password: Optional[str] = None
    password_confirm: Optional[str] = None

    @field_validator("username")
    @classmethod
    def _username_format(cls, value: Optional[str]) -> Optional[str]:
        if not value:
            return value
        try:
            return validate_username(value)
        except ValidationError as exc:
            raise ValueError(exc.message) from exc

    @field_validator("first_name", "last_name")
    @classmethod
    def _name_format(cls, value: Optional[str]) -> Optional[str]:
        if not value:
            return value
        try:
            return validate_name(value, "Name")
        except ValidationError as exc:
            raise ValueError(exc.message) from exc


class RegisterResponse(CamelModel):
    success: bool = True
    message: str
    email_sent: bool


class LoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class SessionResponse(CamelModel):
    """Body returned by login and refresh; the refresh token travels in a cookie."""

    success: bool = True
    first_name: str
    last_name: str
    username: str
    provider: str
    avatar: Optional[str] = None
    access_token: str


class EmailRequest(CamelModel):
    email: Optional[EmailStr] = None


class ResetPasswordRequest(CamelModel):
    password: Optional[str] = None
    password_confirm: Optional[str] = None
    user_id: Optional[int] = None
    email_token: Optional[str] = None


class MessageResponse(CamelModel):
    success: bool = True
    message: str
