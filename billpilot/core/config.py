import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv


class Settings:
    """Centralised application configuration sourced from environment variables."""

    def __init__(self) -> None:
        load_dotenv()
        self.database_path = Path(os.getenv("DATABASE_PATH", "data/billpilot.db")).resolve()
        self.database_name = os.getenv("DB_NAME", "billpilot")
        self.jwt_secret = os.getenv("JWT_SECRET", "change-me")
        self.jwt_algorithm = os.getenv("JWT_ALGORITHM", "HS256")
        self.access_token_exp_minutes = self._get_int("ACCESS_TOKEN_EXP_MINUTES", default=10)
        self.refresh_token_exp_minutes = self._get_int("REFRESH_TOKEN_EXP_MINUTES", default=60 * 24)
        self.verification_token_exp_minutes = self._get_int("VERIFICATION_TOKEN_EXP_MINUTES", default=15)
        self.domain = os.getenv("DOMAIN", "http://localhost:3000").rstrip("/")
        self.refresh_cookie_name = os.getenv("REFRESH_COOKIE_NAME", "jwt")
        self.cookie_secure = self._get_bool("COOKIE_SECURE", default=True)
        self.smtp_host = os.getenv("SMTP_HOST", "")
        self.smtp_port = self._get_int("SMTP_PORT", default=587)
        self.smtp_username = os.getenv("SMTP_USERNAME", "")
        self.smtp_password = os.getenv("SMTP_PASSWORD", "")
        self.smtp_from_email = os.getenv("SMTP_FROM_EMAIL", "")
        self.smtp_from_name = os.getenv("SMTP_FROM_NAME", "Bill Pilot")
        self.login_rate_limit_attempts = self._get_int("LOGIN_RATE_LIMIT_ATTEMPTS", default=20)
        self.login_rate_limit_window_seconds = self._get_int("LOGIN_RATE_LIMIT_WINDOW_SECONDS", default=30 * 60)
        self.admin_default_email = os.getenv("ADMIN_EMAIL")
        self.admin_default_password = os.getenv("ADMIN_PASSWORD")
        self.admin_default_username = os.getenv("ADMIN_USERNAME", "admin")
        origins = os.getenv("CORS_ALLOW_ORIGINS")
        if origins:
            self.cors_allow_origins: List[str] = [item.strip() for item in origins.split(",") if item.strip()]
        else:
            self.cors_allow_origins = ["*"]

    @property
    def refresh_cookie_max_age(self) -> int:
        return self.refresh_token_exp_minutes * 60

    @staticmethod
    def _get_int(key: str, default: Optional[int] = None) -> int:
        value = os.getenv(key)
        if value is None:
            if default is None:
                raise RuntimeError(f"Missing required environment variable: {key}")
            return default
        try:
            return int(value)
        except ValueError as exc:
            raise RuntimeError(f"Environment variable {key} must be an integer") from exc

    @staticmethod
    def _get_bool(key: str, default: bool) -> bool:
        value = os.getenv(key)
        if value is None:
            return default
        return value.strip().lower() in {"1", "true", "yes", "on"}
