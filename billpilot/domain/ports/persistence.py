from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol

from ..models import TokenPurpose, User, VerificationToken


class UserRepository(Protocol):
    """Credential store: user records and their rotating refresh-token sets."""

    def create(
        self,
        email: str,
        username: str,
        first_name: str,
        last_name: str,
        password: str,
        *,
        is_email_verified: bool = False,
        roles: Optional[List[str]] = None,
        provider: str = "email",
        profile: Optional[Dict[str, Any]] = None,
    ) -> User:
        ...

    def get_by_id(self, user_id: int) -> Optional[User]:
        ...

    def get_by_email(self, email: str) -> Optional[User]:
        ...

    def get_by_username(self, username: str) -> Optional[User]:
        ...

    def get_by_refresh_token(self, token: str) -> Optional[User]:
        ...

    def update_profile(self, user_id: int, fields: Dict[str, Any]) -> User:
        ...

    def update_password(self, user_id: int, password: str) -> User:
        ...

    def mark_email_verified(self, user_id: int) -> User:
        ...

    def set_active(self, user_id: int, active: bool) -> User:
        ...

    def rotate_refresh_token(
        self,
        user_id: int,
        new_token: str,
        old_token: Optional[str] = None,
        *,
        revoke_all: bool = False,
        require_old: bool = False,
    ) -> bool:
        ...

    def remove_refresh_token(self, user_id: int, token: str) -> bool:
        ...

    def clear_refresh_tokens(self, user_id: int) -> int:
        ...

    def list_all(self, limit: int, offset: int) -> List[User]:
        ...

    def count(self) -> int:
        ...

    def delete(self, user_id: int) -> bool:
        ...


class VerificationTokenRepository(Protocol):
    """Verification token store: one live token per user and purpose."""

    def replace(self, user_id: int, purpose: TokenPurpose, token: str) -> VerificationToken:
        ...

    def find(self, user_id: int, token: str, purpose: TokenPurpose) -> Optional[VerificationToken]:
        ...

    def find_for_user(self, user_id: int, purpose: TokenPurpose) -> Optional[VerificationToken]:
        ...

    def delete(self, token_id: int) -> None:
        ...

    def delete_for_user(self, user_id: int) -> None:
        ...
