"""Service for sending emails."""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from billpilot.domain.models.user import User

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates" / "emails"


class EmailService:
    """Service for sending templated emails via SMTP."""

    def __init__(
        self,
        domain: str,
        smtp_host: str = "",
        smtp_port: int = 587,
        smtp_username: str = "",
        smtp_password: str = "",
        from_email: str = "",
        from_name: str = "Bill Pilot",
        verification_window_minutes: int = 15,
        templates_dir: Optional[Path] = None,
    ):
        self.domain = domain.rstrip("/")
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_username = smtp_username
        self.smtp_password = smtp_password
        self.from_email = from_email
        self.from_name = from_name
        self.verification_window_minutes = verification_window_minutes
        self.enabled = bool(self.smtp_host and self.smtp_username and self.from_email)
        self._templates = Environment(
            loader=FileSystemLoader(str(templates_dir or TEMPLATES_DIR)),
            autoescape=select_autoescape(["html"]),
        )

    def verification_link(self, user: User, token: str) -> str:
        return f"{self.domain}/api/v1/auth/verify/{token}/{user.id}"

    def password_reset_link(self, user: User, token: str) -> str:
        return f"{self.domain}/auth/reset_password?emailToken={token}&userId={user.id}"

    def send_verification_email(self, user: User, token: str) -> bool:
        return self.send(
            user.email,
            "Account Verification",
            "account_verification",
            {"name": user.first_name, "link": self.verification_link(user, token)},
        )

    def send_welcome_email(self, user: User) -> bool:
        return self.send(
            user.email,
            "Welcome - Account Verified",
            "welcome",
            {"name": user.first_name, "link": f"{self.domain}/login"},
        )

    def send_password_reset_request_email(self, user: User, token: str) -> bool:
        return self.send(
            user.email,
            "Password Reset Request",
            "request_reset_password",
            {"name": user.first_name, "link": self.password_reset_link(user, token)},
        )

    def send_password_reset_confirmation(self, user: User) -> bool:
        return self.send(
            user.email,
            "Password Reset Success",
            "reset_password",
            {"name": user.first_name},
        )

    def send(self, to_email: str, subject: str, template: str, context: Dict[str, Any]) -> bool:
        """
        Render ``<template>.html`` and ``<template>.txt`` and deliver them.

        Returns:
            True if sent (or logged in development mode), False otherwise
        """
        context = {"window_minutes": self.verification_window_minutes, **context}
        html_body = self._templates.get_template(f"{template}.html").render(**context)
        text_body = self._templates.get_template(f"{template}.txt").render(**context)
        return self._send_email(to_email, subject, html_body, text_body, context.get("link"))

    def _send_email(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str,
        link: Optional[str] = None,
    ) -> bool:
        """
        Send an email via SMTP.

        Returns:
            True if sent successfully, False otherwise
        """
        if not self.enabled:
            logger.info("SMTP disabled; '%s' for %s%s", subject, to_email, f": {link}" if link else "")
            return True

        try:
            msg = MIMEMultipart("alternative")
            msg["Subject"] = subject
            msg["From"] = f"{self.from_name} <{self.from_email}>"
            msg["To"] = to_email

            msg.attach(MIMEText(text_body, "plain", "utf-8"))
            msg.attach(MIMEText(html_body, "html", "utf-8"))

            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as server:
                server.starttls()
                server.login(self.smtp_username, self.smtp_password)
                server.send_message(msg)

            logger.info("Sent '%s' email to %s", subject, to_email)
            return True

        except (smtplib.SMTPException, OSError):
            logger.exception("Failed to send '%s' email to %s", subject, to_email)
            return False
