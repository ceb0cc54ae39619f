"""API router for registration, sessions and password recovery."""

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status

from ....application.services.auth_service import AuthService, SessionTokens, VerificationOutcome
from ....core.config import Settings
from ....core.dependencies import get_auth_service, get_login_rate_limiter, get_settings
from ....core.exceptions import Forbidden, Unauthenticated
from ....services.rate_limiter import LoginRateLimiter
from ..errors import error_response
from ..schemas.auth import (
    EmailRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    SessionResponse,
)

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


def rate_limit_login(
    request: Request,
    limiter: LoginRateLimiter = Depends(get_login_rate_limiter),
) -> None:
    client = request.client.host if request.client else "unknown"
    limiter.hit(client)


def _set_session_cookie(response: Response, settings: Settings, token: str) -> None:
    response.set_cookie(
        key=settings.refresh_cookie_name,
        value=token,
        max_age=settings.refresh_cookie_max_age,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="none",
    )


def _clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=settings.refresh_cookie_name,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="none",
    )


def _session_cookie(request: Request, settings: Settings) -> Optional[str]:
    return request.cookies.get(settings.refresh_cookie_name) or None


def _session_response(session: SessionTokens) -> SessionResponse:
    user = session.user
    return SessionResponse(
        first_name=user.first_name,
        last_name=user.last_name,
        username=user.username,
        provider=user.provider,
        avatar=user.avatar,
        access_token=session.access_token,
    )


@router.post("/register", response_model=RegisterResponse)
def register(
    payload: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
) -> RegisterResponse:
    """Register a new user and send the verification link."""
    result = auth_service.register(
        email=payload.email,
        username=payload.username,
        first_name=payload.first_name,
        last_name=payload.last_name,
        password=payload.password,
        password_confirm=payload.password_confirm,
    )
    if result.email_sent:
        message = (
            f"A new user {result.user.first_name} has been registered! A verification email has been "
            f"sent to your account. Please verify within {settings.verification_token_exp_minutes} minutes"
        )
    else:
        message = (
            f"A new user {result.user.first_name} has been registered, but the verification email "
            "could not be sent. Please request a new verification email"
        )
    return RegisterResponse(message=message, email_sent=result.email_sent)


@router.post("/login", response_model=SessionResponse, dependencies=[Depends(rate_limit_login)])
def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
) -> SessionResponse:
    """Authenticate with email and password, issuing access and refresh tokens."""
    session = auth_service.login(
        payload.email or "",
        payload.password or "",
        presented_refresh=_session_cookie(request, settings),
    )
    _set_session_cookie(response, settings, session.refresh_token)
    return _session_response(session)


@router.get("/verify/{email_token}/{user_id}", response_model=MessageResponse)
def verify_email(
    email_token: str,
    user_id: int,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Consume an email verification token."""
    outcome = auth_service.verify_email(user_id, email_token)
    if outcome is VerificationOutcome.ALREADY_VERIFIED:
        return MessageResponse(message="This user has already been verified. Please login")
    return MessageResponse(message="Your account has been verified. You can now login")


@router.get("/new_access_token", response_model=SessionResponse)
def new_access_token(
    request: Request,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
) -> Response:
    """Rotate the refresh token held in the session cookie and issue a new access token."""
    try:
        session = auth_service.refresh(_session_cookie(request, settings))
    except (Forbidden, Unauthenticated) as exc:
        rejected = error_response(exc)
        _clear_session_cookie(rejected, settings)
        return rejected
    _set_session_cookie(response, settings, session.refresh_token)
    return _session_response(session)


@router.post("/resend_email_token", response_model=MessageResponse)
def resend_email_token(
    payload: EmailRequest,
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
) -> MessageResponse:
    result = auth_service.resend_verification(payload.email or "")
    return MessageResponse(
        message=(
            f"{result.user.first_name}, an email has been sent to your account, please verify "
            f"within {settings.verification_token_exp_minutes} minutes"
        )
    )


@router.post("/reset_password_request", response_model=MessageResponse)
def reset_password_request(
    payload: EmailRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    result = auth_service.request_password_reset(payload.email or "")
    return MessageResponse(
        message=(
            f"Hello {result.user.first_name}, an email has been sent to your account with "
            "password reset link"
        )
    )


@router.post("/reset_password", response_model=MessageResponse)
def reset_password(
    payload: ResetPasswordRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    user = auth_service.reset_password(
        user_id=payload.user_id,
        token=payload.email_token,
        password=payload.password or "",
        password_confirm=payload.password_confirm or "",
    )
    return MessageResponse(
        message=(
            f"Hey {user.first_name}, your password reset was successful. An email has been "
            "sent to confirm the same"
        )
    )


@router.get("/logout", response_model=MessageResponse)
def logout(
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
) -> Response:
    """Revoke the refresh token in the session cookie."""
    presented = _session_cookie(request, settings)
    if not presented:
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    user = auth_service.logout(presented)
    if user is None:
        response = Response(status_code=status.HTTP_204_NO_CONTENT)
        _clear_session_cookie(response, settings)
        return response

    response_body = MessageResponse(message=f"{user.first_name}, you have been logged out successfully")
    response = Response(
        content=response_body.model_dump_json(by_alias=True),
        media_type="application/json",
    )
    _clear_session_cookie(response, settings)
    return response
