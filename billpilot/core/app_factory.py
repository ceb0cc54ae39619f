from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings
from .container import ApplicationContainer
from .logging import configure_logging
from ..application.services.auth_service import AuthService
from ..infrastructure.repositories.user_repository import UserRepository
from ..infrastructure.repositories.verification_token_repository import VerificationTokenRepository
from ..presentation.api.errors import register_exception_handlers
from ..presentation.api.routers import auth as auth_router
from ..presentation.api.routers import user_router
from ..services.email_service import EmailService
from ..services.password_hasher import PasswordHasher
from ..services.rate_limiter import LoginRateLimiter
from ..services.token_issuer import TokenIssuer
from ..services.user_service import UserService

logger = logging.getLogger(__name__)


def create_application(
    settings: Optional[Settings] = None,
    email_service: Optional[EmailService] = None,
) -> FastAPI:
    settings = settings or Settings()

    app = FastAPI(title="Bill Pilot", lifespan=_create_lifespan(settings, email_service))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials="*" not in settings.cors_allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(auth_router.router)
    app.include_router(user_router.router)

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        return {"ok": True, "database": settings.database_name}

    return app


def build_container(
    settings: Settings,
    email_service: Optional[EmailService] = None,
) -> ApplicationContainer:
    password_hasher = PasswordHasher()
    user_repository = UserRepository(str(settings.database_path), password_hasher)
    verification_token_repository = VerificationTokenRepository(str(settings.database_path))
    token_issuer = TokenIssuer(
        secret=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        access_exp_minutes=settings.access_token_exp_minutes,
        refresh_exp_minutes=settings.refresh_token_exp_minutes,
    )
    email_service = email_service or EmailService(
        domain=settings.domain,
        smtp_host=settings.smtp_host,
        smtp_port=settings.smtp_port,
        smtp_username=settings.smtp_username,
        smtp_password=settings.smtp_password,
        from_email=settings.smtp_from_email,
        from_name=settings.smtp_from_name,
        verification_window_minutes=settings.verification_token_exp_minutes,
    )
    auth_service = AuthService(
        users=user_repository,
        verification_tokens=verification_token_repository,
        password_hasher=password_hasher,
        token_issuer=token_issuer,
        email_service=email_service,
        verification_window_minutes=settings.verification_token_exp_minutes,
    )
    user_service = UserService(user_repository, verification_token_repository)
    login_rate_limiter = LoginRateLimiter(
        max_attempts=settings.login_rate_limit_attempts,
        window_seconds=settings.login_rate_limit_window_seconds,
    )

    return ApplicationContainer(
        settings=settings,
        user_repository=user_repository,
        verification_token_repository=verification_token_repository,
        password_hasher=password_hasher,
        token_issuer=token_issuer,
        email_service=email_service,
        auth_service=auth_service,
        user_service=user_service,
        login_rate_limiter=login_rate_limiter,
    )


def _create_lifespan(settings: Settings, email_service: Optional[EmailService]):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging()
        container = build_container(settings, email_service)
        container.user_service.ensure_default_admin(
            settings.admin_default_email,
            settings.admin_default_password,
            settings.admin_default_username,
        )
        if not container.email_service.enabled:
            logger.warning("SMTP is not configured; email links will be logged instead of sent")

        app.state.container = container  # type: ignore[attr-defined]
        logger.info("Bill Pilot started with database %s", settings.database_path)
        try:
            yield
        finally:
            app.state.container = None  # type: ignore[attr-defined]

    return lifespan
