"""Single-use tokens proving control of an email address."""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional


class TokenPurpose(str, Enum):
    VERIFY_EMAIL = "verify_email"
    RESET_PASSWORD = "reset_password"


class VerificationToken:
    """
    Opaque token mailed to a user for email verification or password reset.

    At most one token exists per user and purpose; issuing a new one
    replaces the previous token.
    """

    def __init__(
        self,
        id: int,
        user_id: int,
        token: str,
        purpose: TokenPurpose,
        created_at: Optional[datetime] = None,
    ):
        self.id = id
        self.user_id = user_id
        self.token = token
        self.purpose = TokenPurpose(purpose)
        self.created_at = created_at or datetime.now(tz=timezone.utc)

    def is_expired(self, window: timedelta, now: Optional[datetime] = None) -> bool:
        return (now or datetime.now(tz=timezone.utc)) - self.created_at > window

    def __repr__(self) -> str:
        return f"<VerificationToken id={self.id} user_id={self.user_id} purpose={self.purpose.value}>"
