from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Dict, Optional, Tuple, Type

from ...core.exceptions import (
    AlreadyVerified,
    BillPilotError,
    Deactivated,
    Forbidden,
    InvalidCredentials,
    InvalidOrExpiredToken,
    InvalidToken,
    MissingField,
    NotFound,
    NotVerified,
    TokenError,
    TokenExpired,
    Unauthenticated,
)
from ...domain.models import AccountState, TokenPurpose, User
from ...domain.ports.persistence import UserRepository, VerificationTokenRepository
from ...domain.validation import validate_password_pair
from ...services.email_service import EmailService
from ...services.password_hasher import PasswordHasher
from ...services.token_issuer import ACCESS, REFRESH, TokenIssuer

logger = logging.getLogger(__name__)

_SIGN_IN_BLOCKED: Dict[AccountState, Tuple[Type[BillPilotError], str]] = {
    AccountState.PENDING_VERIFICATION: (
        NotVerified,
        "You are not verified. Check your email, a verification link was sent when you registered!",
    ),
    AccountState.DEACTIVATED: (
        Deactivated,
        "You have been deactivated by the admin and login is not possible. Please contact support",
    ),
}


class VerificationOutcome(str, Enum):
    VERIFIED = "verified"
    ALREADY_VERIFIED = "already_verified"


@dataclass(slots=True)
class SessionTokens:
    user: User
    access_token: str
    refresh_token: str


@dataclass(slots=True)
class EmailDispatch:
    user: User
    email_sent: bool


class AuthService:
    """
    Coordinates registration, email verification, sign-in, refresh-token
    rotation, sign-out and password reset.

    Refresh tokens are tracked per user so they can be revoked. Presenting a
    refresh token that no user holds any more is treated as theft: every
    session of the implicated user is revoked.
    """

    def __init__(
        self,
        users: UserRepository,
        verification_tokens: VerificationTokenRepository,
        password_hasher: PasswordHasher,
        token_issuer: TokenIssuer,
        email_service: EmailService,
        verification_window_minutes: int = 15,
    ) -> None:
        self._users = users
        self._tokens = verification_tokens
        self._hasher = password_hasher
        self._issuer = token_issuer
        self._email = email_service
        self._window = timedelta(minutes=verification_window_minutes)

    def register(
        self,
        email: str,
        username: str,
        first_name: str,
        last_name: str,
        password: str,
        password_confirm: str,
    ) -> EmailDispatch:
        _require(email, "email", "An email address is required!")
        _require(username, "username", "A username is required")
        _require(first_name, "firstName", "You must enter a full name with a first and last name")
        _require(last_name, "lastName", "You must enter a full name with a first and last name")
        _require(password, "password", "You must enter a password")
        _require(password_confirm, "passwordConfirm", "Confirm password field is required")
        validate_password_pair(password, password_confirm)

        user = self._users.create(
            email=email,
            username=username,
            first_name=first_name,
            last_name=last_name,
            password=password,
        )
        token = self._tokens.replace(user.id, TokenPurpose.VERIFY_EMAIL, _new_token())
        sent = self._email.send_verification_email(user, token.token)
        if not sent:
            logger.warning("Verification email for user %s could not be delivered", user.id)
        logger.info("Registered user %s", user.id)
        return EmailDispatch(user=user, email_sent=sent)

    def verify_email(self, user_id: int, token: str) -> VerificationOutcome:
        user = self._users.get_by_id(user_id)
        if not user:
            raise NotFound("We were unable to find a user for this token")
        if user.is_email_verified:
            return VerificationOutcome.ALREADY_VERIFIED

        record = self._tokens.find(user.id, token, TokenPurpose.VERIFY_EMAIL)
        if not record:
            raise InvalidToken("Token invalid! Your token may have expired")
        if record.is_expired(self._window):
            self._tokens.delete(record.id)
            raise TokenExpired("Your verification token has expired. Please request a new one")

        user = self._users.mark_email_verified(user.id)
        if not self._email.send_welcome_email(user):
            logger.warning("Welcome email for user %s could not be delivered", user.id)
        self._tokens.delete(record.id)
        logger.info("User %s verified their email", user.id)
        return VerificationOutcome.VERIFIED

    def login(self, email: str, password: str, presented_refresh: Optional[str] = None) -> SessionTokens:
        if not email or not password:
            raise MissingField("email" if not email else "password", "Please provide an email and password")

        user = self._users.get_by_email(email)
        if not user or not self._hasher.compare(password, user.password_hash):
            logger.warning("Failed login attempt")
            raise InvalidCredentials("Incorrect email or password")
        self._ensure_can_sign_in(user)

        access_token = self._issuer.issue_access(user.id, user.roles)
        refresh_token = self._issuer.issue_refresh(user.id)

        if not presented_refresh:
            self._users.rotate_refresh_token(user.id, refresh_token)
        elif self._users.get_by_refresh_token(presented_refresh) is None:
            logger.warning("Unknown refresh token presented at login for user %s; revoking its sessions", user.id)
            self._users.rotate_refresh_token(user.id, refresh_token, revoke_all=True)
        else:
            self._users.rotate_refresh_token(user.id, refresh_token, old_token=presented_refresh)

        logger.info("User %s logged in", user.id)
        return SessionTokens(user=self._reload(user), access_token=access_token, refresh_token=refresh_token)

    def refresh(self, presented_refresh: Optional[str]) -> SessionTokens:
        if not presented_refresh:
            raise Unauthenticated("No session found. Please log in")

        holder = self._users.get_by_refresh_token(presented_refresh)
        if holder is None:
            self._contain_reuse(presented_refresh)
            raise Forbidden("Refresh token is no longer valid")

        try:
            payload = self._issuer.verify(presented_refresh, REFRESH)
        except TokenError as exc:
            self._users.remove_refresh_token(holder.id, presented_refresh)
            raise Forbidden("Refresh token is invalid or expired") from exc

        if payload["id"] != holder.id:
            logger.warning("Refresh token subject does not match holder %s", holder.id)
            raise Forbidden("Refresh token is invalid")

        if holder.state is not AccountState.ACTIVE:
            self._users.remove_refresh_token(holder.id, presented_refresh)
            raise Forbidden("This account can no longer sign in")

        access_token = self._issuer.issue_access(holder.id, holder.roles)
        refresh_token = self._issuer.issue_refresh(holder.id)
        rotated = self._users.rotate_refresh_token(
            holder.id, refresh_token, old_token=presented_refresh, require_old=True
        )
        if not rotated:
            # a concurrent request consumed the same token first
            raise Forbidden("Refresh token is no longer valid")

        return SessionTokens(user=self._reload(holder), access_token=access_token, refresh_token=refresh_token)

    def logout(self, presented_refresh: Optional[str]) -> Optional[User]:
        """Revoke the presented refresh token. Returns the user that held it, if any."""
        if not presented_refresh:
            return None
        holder = self._users.get_by_refresh_token(presented_refresh)
        if holder is None:
            return None
        self._users.remove_refresh_token(holder.id, presented_refresh)
        logger.info("User %s logged out", holder.id)
        return holder

    def resend_verification(self, email: str) -> EmailDispatch:
        _require(email, "email", "An email must be provided")
        user = self._users.get_by_email(email)
        if not user:
            raise NotFound("We were unable to find a user with that email address")
        if user.is_email_verified:
            raise AlreadyVerified("This account has already been verified. Please login")

        token = self._tokens.replace(user.id, TokenPurpose.VERIFY_EMAIL, _new_token())
        sent = self._email.send_verification_email(user, token.token)
        if not sent:
            logger.warning("Verification email for user %s could not be delivered", user.id)
        return EmailDispatch(user=user, email_sent=sent)

    def request_password_reset(self, email: str) -> EmailDispatch:
        _require(email, "email", "You must enter your email address")
        user = self._users.get_by_email(email)
        if not user:
            raise NotFound("That email is not associated with any account")
        if not user.is_email_verified:
            raise NotVerified("Please verify your email address before resetting your password")

        token = self._tokens.replace(user.id, TokenPurpose.RESET_PASSWORD, _new_token())
        sent = self._email.send_password_reset_request_email(user, token.token)
        if not sent:
            logger.warning("Password reset email for user %s could not be delivered", user.id)
        return EmailDispatch(user=user, email_sent=sent)

    def reset_password(
        self,
        user_id: Optional[int],
        token: Optional[str],
        password: str,
        password_confirm: str,
    ) -> User:
        _require(password, "password", "A password is required")
        _require(password_confirm, "passwordConfirm", "A confirm password field is required")
        validate_password_pair(password, password_confirm)

        invalid = "Your token is either invalid or expired. Try resetting your password again"
        if user_id is None or not token:
            raise InvalidOrExpiredToken(invalid)
        record = self._tokens.find(user_id, token, TokenPurpose.RESET_PASSWORD)
        if not record:
            raise InvalidOrExpiredToken(invalid)
        if record.is_expired(self._window):
            self._tokens.delete(record.id)
            raise TokenExpired(invalid)

        user = self._users.update_password(record.user_id, password)
        self._tokens.delete(record.id)
        revoked = self._users.clear_refresh_tokens(user.id)
        logger.info("User %s reset their password; %d sessions revoked", user.id, revoked)
        if not self._email.send_password_reset_confirmation(user):
            logger.warning("Password reset confirmation for user %s could not be delivered", user.id)
        return user

    def authenticate(self, access_token: str) -> User:
        """Resolve the user behind a bearer access token."""
        try:
            payload = self._issuer.verify(access_token, ACCESS)
        except TokenError as exc:
            raise Forbidden("Invalid or expired access token") from exc
        user = self._users.get_by_id(payload["id"])
        if not user:
            raise Unauthenticated("User not found")
        return user

    def _ensure_can_sign_in(self, user: User) -> None:
        blocked = _SIGN_IN_BLOCKED.get(user.state)
        if blocked:
            error_cls, message = blocked
            raise error_cls(message)

    def _contain_reuse(self, presented_refresh: str) -> None:
        try:
            payload = self._issuer.verify(presented_refresh, REFRESH, allow_expired=True)
        except TokenError:
            logger.warning("Unrecognised refresh token presented; nothing to revoke")
            return
        revoked = self._users.clear_refresh_tokens(payload["id"])
        logger.warning(
            "Refresh token reuse detected for user %s; revoked %d sessions", payload["id"], revoked
        )

    def _reload(self, user: User) -> User:
        return self._users.get_by_id(user.id) or user


def _require(value: Optional[str], field: str, message: str) -> None:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise MissingField(field, message)


def _new_token() -> str:
    return secrets.token_hex(32)
