"""Signed access and refresh tokens."""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

import jwt

from billpilot.core.exceptions import Expired, InvalidSignature

logger = logging.getLogger(__name__)

ACCESS = "access"
REFRESH = "refresh"


class TokenIssuer:
    """
    Issues and verifies HS256 tokens signed with a single server secret.

    Access tokens carry the user id and roles; refresh tokens carry only the
    user id. Both embed a random ``jti`` so two tokens issued in the same
    second are still distinct.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        access_exp_minutes: int = 10,
        refresh_exp_minutes: int = 60 * 24,
    ):
        if not secret:
            raise RuntimeError("JWT_SECRET is not configured.")
        if secret == "change-me":
            logger.warning("JWT_SECRET is using the default value. Configure a real secret in production.")
        self._secret = secret
        self._algorithm = algorithm
        self.access_exp_minutes = access_exp_minutes
        self.refresh_exp_minutes = refresh_exp_minutes

    def issue_access(self, user_id: int, roles: List[str]) -> str:
        return self._encode(
            {"id": user_id, "roles": list(roles)},
            ACCESS,
            timedelta(minutes=self.access_exp_minutes),
        )

    def issue_refresh(self, user_id: int) -> str:
        return self._encode({"id": user_id}, REFRESH, timedelta(minutes=self.refresh_exp_minutes))

    def verify(self, token: str, token_type: str = ACCESS, allow_expired: bool = False) -> Dict[str, Any]:
        """
        Verify signature, expiry and token type.

        ``allow_expired`` still checks the signature but accepts a token past
        its expiry, for identifying the owner of a replayed token.

        Raises:
            Expired: The token is past its expiry
            InvalidSignature: The token is malformed, forged or of another type
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["exp", "iat", "sub"], "verify_exp": not allow_expired},
            )
        except jwt.ExpiredSignatureError as exc:
            raise Expired("Token has expired") from exc
        except jwt.InvalidTokenError as exc:
            raise InvalidSignature("Token is invalid") from exc

        if payload.get("type") != token_type:
            raise InvalidSignature("Unexpected token type")
        try:
            payload["id"] = int(payload["sub"])
        except (TypeError, ValueError) as exc:
            raise InvalidSignature("Token subject is invalid") from exc
        return payload

    def _encode(self, claims: Dict[str, Any], token_type: str, lifetime: timedelta) -> str:
        now = datetime.now(tz=timezone.utc)
        payload = {
            "sub": str(claims.pop("id")),
            "type": token_type,
            "jti": secrets.token_hex(16),
            "iat": now,
            "exp": now + lifetime,
            **claims,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)
