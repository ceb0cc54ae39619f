from fastapi import Depends, Request

from .config import Settings
from .container import ApplicationContainer
from ..application.services.auth_service import AuthService
from ..services.rate_limiter import LoginRateLimiter
from ..services.user_service import UserService


def get_container(request: Request) -> ApplicationContainer:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise RuntimeError("Bill Pilot container is missing; was the application lifespan started?")
    return container


def get_settings(container: ApplicationContainer = Depends(get_container)) -> Settings:
    return container.settings


def get_auth_service(container: ApplicationContainer = Depends(get_container)) -> AuthService:
    return container.auth_service


def get_user_service(container: ApplicationContainer = Depends(get_container)) -> UserService:
    return container.user_service


def get_login_rate_limiter(container: ApplicationContainer = Depends(get_container)) -> LoginRateLimiter:
    return container.login_rate_limiter
