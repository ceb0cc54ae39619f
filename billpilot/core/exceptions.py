"""Exceptions raised by Bill Pilot services and mapped to HTTP responses."""

from typing import Optional


class BillPilotError(Exception):
    """Base exception for Bill Pilot. Carries the HTTP status it maps to."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(BillPilotError):
    """Missing or malformed input."""

    status_code = 400


class MissingField(ValidationError):
    """A required field was not supplied."""

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        super().__init__(message or f"{field} is required")


class PasswordMismatch(ValidationError):
    pass


class PasswordTooShort(ValidationError):
    pass


class DuplicateIdentity(BillPilotError):
    """Email or username already belongs to another account."""

    status_code = 409


class InvalidCredentials(BillPilotError):
    status_code = 401


class NotVerified(BillPilotError):
    status_code = 400


class Deactivated(BillPilotError):
    status_code = 400


class AlreadyVerified(BillPilotError):
    status_code = 400


class Unauthenticated(BillPilotError):
    status_code = 401


class Forbidden(BillPilotError):
    status_code = 403


class NotFound(BillPilotError):
    status_code = 404


class InvalidToken(BillPilotError):
    """Verification token absent or not matching the user."""

    status_code = 400


class InvalidOrExpiredToken(BillPilotError):
    status_code = 400


class TokenExpired(InvalidOrExpiredToken):
    pass


class RateLimited(BillPilotError):
    """Too many attempts from one client."""

    status_code = 429

    def __init__(self, message: str, retry_after: Optional[int] = None):
        self.retry_after = retry_after
        super().__init__(message)


class TokenError(Exception):
    """Signed token could not be accepted."""


class InvalidSignature(TokenError):
    pass


class Expired(TokenError):
    pass
