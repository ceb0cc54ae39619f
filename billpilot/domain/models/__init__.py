"""Domain models for the Bill Pilot application."""

from .user import ADMIN_ROLE, USER_ROLE, AccountState, User
from .verification_token import TokenPurpose, VerificationToken

__all__ = [
    "ADMIN_ROLE",
    "USER_ROLE",
    "AccountState",
    "TokenPurpose",
    "User",
    "VerificationToken",
]
