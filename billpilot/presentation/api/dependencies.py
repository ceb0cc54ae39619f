from typing import Callable

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ...application.services.auth_service import AuthService
from ...core.dependencies import get_auth_service
from ...core.exceptions import Forbidden, Unauthenticated
from ...domain.models import User

_bearer_scheme = HTTPBearer(auto_error=False)


def require_user(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    """Dependency to get the user behind the bearer access token."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise Unauthenticated("Missing bearer access token")
    return auth_service.authenticate(credentials.credentials)


def require_role(role: str) -> Callable[..., User]:
    def dependency(user: User = Depends(require_user)) -> User:
        if not user.has_role(role):
            raise Forbidden("You are not authorized to perform this request")
        return user

    return dependency
