"""Service for user profile and account administration."""

import logging
import math
from typing import Any, Dict, List, Optional, Tuple

from billpilot.core.exceptions import NotFound, ValidationError
from billpilot.domain.models.user import ADMIN_ROLE, USER_ROLE, User
from billpilot.domain.ports.persistence import UserRepository, VerificationTokenRepository

logger = logging.getLogger(__name__)

PAGE_SIZE = 10

_PASSWORD_FIELDS = {"password", "password_confirm"}
_PROTECTED_FIELDS = {"email", "is_email_verified", "provider", "roles", "google_id", "username"}


class UserService:
    """Service for managing user profiles and administrator actions."""

    def __init__(
        self,
        user_repository: UserRepository,
        verification_token_repository: VerificationTokenRepository,
    ):
        self.user_repository = user_repository
        self.verification_token_repository = verification_token_repository

    def update_profile(self, user: User, fields: Dict[str, Any]) -> User:
        """
        Update the caller's own profile.

        Args:
            user: Authenticated user
            fields: Snake-cased field names mapped to new values

        Raises:
            ValidationError: If a credential or identity field is included
        """
        if _PASSWORD_FIELDS & set(fields):
            raise ValidationError(
                "This route is not for password updates. Please use the password reset functionality instead"
            )
        if _PROTECTED_FIELDS & set(fields):
            raise ValidationError("You are not allowed to update that field on this route")
        return self.user_repository.update_profile(user.id, fields)

    def delete_account(self, user_id: int) -> User:
        """Delete a user with its sessions and pending tokens."""
        user = self.user_repository.get_by_id(user_id)
        if not user or not self.user_repository.delete(user_id):
            raise NotFound("User not found!")
        self.verification_token_repository.delete_for_user(user_id)
        logger.info("Deleted user %s", user_id)
        return user

    def list_users(self, page: int) -> Tuple[List[User], int, int]:
        """
        List one page of users, newest first.

        Returns:
            Tuple of (users, total_count, number_of_pages)
        """
        page = max(page, 1)
        count = self.user_repository.count()
        users = self.user_repository.list_all(limit=PAGE_SIZE, offset=PAGE_SIZE * (page - 1))
        return users, count, math.ceil(count / PAGE_SIZE)

    def deactivate_user(self, user_id: int) -> User:
        """Block sign-in for a user and revoke all of its sessions."""
        if not self.user_repository.get_by_id(user_id):
            raise NotFound("user was not found!")
        user = self.user_repository.set_active(user_id, False)
        revoked = self.user_repository.clear_refresh_tokens(user_id)
        logger.info("Deactivated user %s; %d sessions revoked", user_id, revoked)
        return user

    def ensure_default_admin(
        self,
        email: Optional[str],
        password: Optional[str],
        username: str = "admin",
    ) -> Optional[User]:
        if not email or not password:
            return None
        existing = self.user_repository.get_by_email(email)
        if existing:
            return existing
        logger.info("Creating default administrator account for %s", email)
        return self.user_repository.create(
            email=email,
            username=username,
            first_name="Admin",
            last_name="User",
            password=password,
            is_email_verified=True,
            roles=[USER_ROLE, ADMIN_ROLE],
        )
