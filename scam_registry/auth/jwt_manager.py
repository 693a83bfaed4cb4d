"""
JWT Token Manager for the development auth gateway
Handles access token generation and validation
"""

import jwt
import secrets
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional
import logging

from scam_registry.core.config import settings

logger = logging.getLogger(__name__)

class JWTManager:
    """
    Manages JWT tokens for authenticated users
    """

    def __init__(self, secret_key: Optional[str] = None, algorithm: Optional[str] = None,
                 token_expiry_hours: Optional[int] = None):
        self.secret_key = secret_key or settings.SECRET_KEY
        self.algorithm = algorithm or settings.ALGORITHM
        self.token_expiry_hours = token_expiry_hours or settings.ACCESS_TOKEN_EXPIRE_HOURS

    @property
    def expires_in(self) -> int:
        """Token lifetime in seconds"""
        return self.token_expiry_hours * 3600

    def generate_access_token(self, user_data: Dict[str, Any]) -> str:
        """
        Generate access token for an authenticated user

        Args:
            user_data: User record with id, email and role

        Returns:
            JWT access token string
        """
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user_data.get("id")),
            "email": user_data.get("email"),
            "role": user_data.get("role"),
            "iat": now,
            "exp": now + timedelta(hours=self.token_expiry_hours),
            "jti": secrets.token_hex(8),
            "type": "access"
        }

        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        logger.info(f"Generated access token for user: {user_data.get('id')}")
        return token

    def verify_token(self, token: str) -> Optional[Dict[str, Any]]:
        """
        Verify and decode JWT token

        Args:
            token: JWT token string

        Returns:
            Decoded token payload or None if invalid
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            logger.warning("Token has expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid token: {str(e)}")
            return None

        if payload.get("type") != "access":
            logger.warning("Token has unexpected type")
            return None
        return payload

    def extract_user_id(self, token: str) -> Optional[str]:
        payload = self.verify_token(token)
        if not payload:
            return None
        return payload.get("sub")
