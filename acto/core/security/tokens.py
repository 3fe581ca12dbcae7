"""
Token management for authentication.

Handles JWT access token generation and validation. The same token is
presented as a bearer credential over HTTP and in the WebSocket
`authenticate` event.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt

from acto.core.config import settings


class TokenManager:
    """Manages JWT access tokens."""

    @staticmethod
    def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
        """
        Create a JWT access token.

        Args:
            data: Payload data (should include user_id)
            expires_delta: Optional expiration time delta

        Returns:
            Encoded JWT token string
        """
        to_encode = data.copy()
        now = datetime.now(timezone.utc)

        if expires_delta:
            expire = now + expires_delta
        else:
            expire = now + timedelta(hours=settings.token_expire_hours)

        to_encode.update({"exp": expire, "iat": now})

        return jwt.encode(
            to_encode,
            settings.secret_key,
            algorithm=settings.token_algorithm,
        )

    @staticmethod
    def verify_token(token: str) -> Optional[Dict[str, Any]]:
        """
        Verify and decode a JWT token.

        Returns:
            Decoded payload dict or None if invalid
        """
        if not token or not isinstance(token, str):
            return None
        try:
            return jwt.decode(
                token,
                settings.secret_key,
                algorithms=[settings.token_algorithm],
            )
        except JWTError:
            return None

    @staticmethod
    def issue_for_identity(identity_id: str) -> str:
        return TokenManager.create_access_token({"user_id": identity_id})

    @staticmethod
    def identity_id_from_token(token: str) -> Optional[str]:
        """Identity ID carried by a valid token, or None."""
        payload = TokenManager.verify_token(token)
        if not payload:
            return None
        user_id = payload.get("user_id")
        return user_id if isinstance(user_id, str) and user_id else None
