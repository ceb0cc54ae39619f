from dataclasses import dataclass

from ..application.services.auth_service import AuthService
from .config import Settings
from ..infrastructure.repositories.user_repository import UserRepository
from ..infrastructure.repositories.verification_token_repository import VerificationTokenRepository
from ..services.email_service import EmailService
from ..services.password_hasher import PasswordHasher
from ..services.rate_limiter import LoginRateLimiter
from ..services.token_issuer import TokenIssuer
from ..services.user_service import UserService


@dataclass(slots=True)
class ApplicationContainer:
    """Dependency registry shared across the FastAPI application lifecycle."""

    settings: Settings
    user_repository: UserRepository
    verification_token_repository: VerificationTokenRepository
    password_hasher: PasswordHasher
    token_issuer: TokenIssuer
    email_service: EmailService
    auth_service: AuthService
    user_service: UserService
    login_rate_limiter: LoginRateLimiter
