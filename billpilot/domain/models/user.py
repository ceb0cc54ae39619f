"""User domain model for invoicing accounts."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

USER_ROLE = "User"
ADMIN_ROLE = "Admin"


class AccountState(str, Enum):
    """Lifecycle state of a registered account."""

    PENDING_VERIFICATION = "pending_verification"
    ACTIVE = "active"
    DEACTIVATED = "deactivated"


class User:
    """
    User entity owning customers and billing documents.

    Attributes:
        id: Unique identifier
        email: Lower-cased email address (unique)
        username: Login handle (unique)
        first_name, last_name: Alphanumeric name parts
        password_hash: bcrypt digest, never serialised to clients
        is_email_verified: Whether the email address has been confirmed
        active: False once an administrator deactivates the account
        provider: Sign-up provider, "email" or "google"
        google_id: External provider id when provider is "google"
        roles: Non-empty list of role names
        refresh_tokens: Currently valid refresh tokens, oldest first
        password_changed_at: Last time an existing password was replaced
    """

    def __init__(
        self,
        id: int,
        email: str,
        username: str,
        first_name: str,
        last_name: str,
        password_hash: str,
        is_email_verified: bool = False,
        active: bool = True,
        provider: str = "email",
        google_id: Optional[str] = None,
        avatar: Optional[str] = None,
        business_name: Optional[str] = None,
        phone_number: Optional[str] = None,
        address: Optional[str] = None,
        city: Optional[str] = None,
        country: Optional[str] = None,
        roles: Optional[List[str]] = None,
        refresh_tokens: Optional[List[str]] = None,
        password_changed_at: Optional[datetime] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ):
        self.id = id
        self.email = email
        self.username = username
        self.first_name = first_name
        self.last_name = last_name
        self.password_hash = password_hash
        self.is_email_verified = is_email_verified
        self.active = active
        self.provider = provider
        self.google_id = google_id
        self.avatar = avatar
        self.business_name = business_name
        self.phone_number = phone_number
        self.address = address
        self.city = city
        self.country = country
        self.roles = list(roles) if roles else [USER_ROLE]
        self.refresh_tokens = list(refresh_tokens or [])
        self.password_changed_at = password_changed_at
        self.created_at = created_at or datetime.now(tz=timezone.utc)
        self.updated_at = updated_at or datetime.now(tz=timezone.utc)

    @property
    def state(self) -> AccountState:
        if not self.is_email_verified:
            return AccountState.PENDING_VERIFICATION
        if not self.active:
            return AccountState.DEACTIVATED
        return AccountState.ACTIVE

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def public_profile(self) -> Dict[str, Any]:
        return {
            "email": self.email,
            "username": self.username,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "avatar": self.avatar,
            "business_name": self.business_name,
            "phone_number": self.phone_number,
            "address": self.address,
            "city": self.city,
            "country": self.country,
            "provider": self.provider,
            "is_email_verified": self.is_email_verified,
            "active": self.active,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email} state={self.state.value}>"
