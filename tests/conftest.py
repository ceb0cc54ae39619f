from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlsplit

import pytest
from fastapi.testclient import TestClient

from billpilot.core.app_factory import build_container, create_application
from billpilot.core.config import Settings
from billpilot.infrastructure.persistence.sqlite import connect
from billpilot.services.email_service import EmailService

PASSWORD = "Str0ng!pw"
JWT_SECRET = "test-secret-that-is-long-enough-for-hs256"

_ISOLATED_ENV = (
    "ADMIN_EMAIL",
    "ADMIN_PASSWORD",
    "ADMIN_USERNAME",
    "SMTP_HOST",
    "SMTP_USERNAME",
    "SMTP_PASSWORD",
    "SMTP_FROM_EMAIL",
    "CORS_ALLOW_ORIGINS",
    "COOKIE_SECURE",
    "REFRESH_COOKIE_NAME",
    "ACCESS_TOKEN_EXP_MINUTES",
    "REFRESH_TOKEN_EXP_MINUTES",
    "VERIFICATION_TOKEN_EXP_MINUTES",
    "LOGIN_RATE_LIMIT_ATTEMPTS",
    "LOGIN_RATE_LIMIT_WINDOW_SECONDS",
)


class RecordingEmailService(EmailService):
    """Keeps rendered messages in memory instead of talking to SMTP."""

    def __init__(self, domain: str):
        super().__init__(domain=domain)
        self.outbox: List[Dict[str, Any]] = []
        self.deliver = True

    def _send_email(self, to_email, subject, html_body, text_body, link=None) -> bool:
        self.outbox.append(
            {"to": to_email, "subject": subject, "html": html_body, "text": text_body, "link": link}
        )
        return self.deliver

    def last_link(self) -> Optional[str]:
        return self.outbox[-1]["link"] if self.outbox else None


def link_path(link: str) -> str:
    return urlsplit(link).path


def link_query(link: str) -> Dict[str, str]:
    return {key: values[0] for key, values in parse_qs(urlsplit(link).query).items()}


def age_verification_tokens(db_path, minutes: int) -> None:
    """Push every stored verification token ``minutes`` into the past."""
    stamp = (datetime.now(tz=timezone.utc) - timedelta(minutes=minutes)).isoformat()
    with connect(str(db_path)) as conn:
        conn.execute("UPDATE verification_tokens SET created_at = ?", (stamp,))


@pytest.fixture
def settings(tmp_path, monkeypatch) -> Settings:
    for key in _ISOLATED_ENV:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "billpilot.db"))
    monkeypatch.setenv("JWT_SECRET", JWT_SECRET)
    monkeypatch.setenv("DOMAIN", "http://localhost:3000/")
    return Settings()


@pytest.fixture
def mailer(settings) -> RecordingEmailService:
    return RecordingEmailService(settings.domain)


@pytest.fixture
def container(settings, mailer):
    return build_container(settings, mailer)


@pytest.fixture
def app(settings, mailer):
    return create_application(settings, mailer)


@pytest.fixture
def client(app):
    # refresh cookies are Secure, so the client must speak https
    with TestClient(app, base_url="https://testserver") as test_client:
        yield test_client


@pytest.fixture
def register(client):
    def _register(
        email: str = "a@x.com",
        username: str = "abcdef",
        first_name: str = "Jane",
        last_name: str = "Doe",
        password: str = PASSWORD,
    ):
        return client.post(
            "/api/v1/auth/register",
            json={
                "email": email,
                "username": username,
                "firstName": first_name,
                "lastName": last_name,
                "password": password,
                "passwordConfirm": password,
            },
        )

    return _register


@pytest.fixture
def signup(client, register, mailer):
    """Register and verify an account through the HTTP surface."""

    def _signup(email: str = "a@x.com", username: str = "abcdef", **fields):
        res = register(email=email, username=username, **fields)
        assert res.status_code == 200, res.text
        verified = client.get(link_path(mailer.last_link()))
        assert verified.status_code == 200, verified.text
        return client.app.state.container.user_repository.get_by_email(email)

    return _signup


@pytest.fixture
def login(client):
    def _login(email: str = "a@x.com", password: str = PASSWORD):
        return client.post("/api/v1/auth/login", json={"email": email, "password": password})

    return _login
