"""
JWT session token signing and validation.

Signs the merged session token contents and decodes them on later requests.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional

import jwt
from loguru import logger

from ..config import settings

# Registered claims managed here, never taken from the session contents
_REGISTERED_CLAIMS = ("iat", "exp", "jti")


class JWTHandler:
    """
    JWT token handler.

    Creates and validates signed session tokens.
    """

    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        max_age_seconds: Optional[int] = None
    ):
        """
        Initialize handler.

        Args:
            secret_key: Secret key for signing tokens
            algorithm: JWT algorithm (default: HS256)
            max_age_seconds: Session lifetime
        """
        self.secret_key = secret_key or settings.jwt_secret
        self.algorithm = algorithm or settings.jwt_algorithm
        self.max_age_seconds = max_age_seconds or settings.session_max_age_seconds

    def encode(self, contents: Mapping[str, Any]) -> str:
        """
        Sign session token contents.

        Args:
            contents: Output of build_token

        Returns:
            JWT token string
        """
        now = datetime.now(timezone.utc)
        payload = {k: v for k, v in contents.items() if k not in _REGISTERED_CLAIMS}
        if contents.get("id"):
            payload["sub"] = str(contents["id"])
        payload.update({
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=self.max_age_seconds)).timestamp()),
            "jti": secrets.token_urlsafe(16),
        })

        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        logger.debug(f"Session token issued for {contents.get('email')}")
        return token

    def decode(self, token: str) -> Optional[Dict[str, Any]]:
        """
        Verify and decode a session token.

        Returns:
            Token contents if valid, None if invalid or expired
        """
        try:
            return jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            logger.warning("Session token has expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid session token: {e}")
            return None

    def expires_at(self, contents: Mapping[str, Any]) -> Optional[datetime]:
        exp = contents.get("exp")
        if exp is None:
            return None
        return datetime.fromtimestamp(exp, tz=timezone.utc)
