"""
Auth Service for the development auth gateway
Orchestrates registration, OTP delivery and verification, token grants,
refresh, logout and password reset on top of the user repository
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
import logging

from scam_registry.auth.jwt_manager import JWTManager
from scam_registry.auth.otp_manager import OTPChannel, SecureOTPManager
from scam_registry.core.config import settings
from scam_registry.services.user_repository import UserRepository

logger = logging.getLogger(__name__)


def _failure(status_code: int, message: str, reason: str) -> Dict[str, Any]:
    return {"success": False, "status_code": status_code, "message": message, "reason": reason}


def _channel_for(email: Optional[str], phone_number: Optional[str]) -> Optional[OTPChannel]:
    if email:
        return "email"
    if phone_number:
        return "sms"
    return None


class AuthService:
    """
    High-level auth service. Every method returns a result dict:
    {"success": True, "data": ...} or {"success": False, "status_code", "message", "reason"}
    """

    def __init__(self, users: Optional[UserRepository] = None,
                 otp_manager: Optional[SecureOTPManager] = None,
                 jwt_manager: Optional[JWTManager] = None):
        self.users = users or UserRepository()
        self.otp_manager = otp_manager or SecureOTPManager()
        self.jwt_manager = jwt_manager or JWTManager()
        # jti -> token expiry (unix seconds)
        self._revoked: Dict[str, int] = {}
        self._reset_tokens: Dict[str, Dict[str, Any]] = {}

    def register(self, email: Optional[str], phone_number: Optional[str],
                 password: Optional[str]) -> Dict[str, Any]:
        channel = _channel_for(email, phone_number)
        if channel is None:
            return _failure(400, "Email or phone number is required", "missing_identifier")

        if self.users.find_by_email_or_phone(email, phone_number):
            return _failure(400, "User already exists with this email or phone", "duplicate")

        identifier = email if channel == "email" else phone_number
        try:
            self.otp_manager.issue(identifier, channel)
        except ValueError as e:
            return _failure(400, str(e), "invalid_identifier")

        user = self.users.create_user(email=email, phone=phone_number, password=password, name="New User")
        logger.info(f"Registered user {user['id']}, OTP sent via {channel}")
        return {"success": True, "data": {"message": f"Verification code sent to your {channel}"}}

    def login(self, email: Optional[str], phone_number: Optional[str],
              password: Optional[str]) -> Dict[str, Any]:
        channel = _channel_for(email, phone_number)
        if channel is None:
            return _failure(400, "Email or phone number is required", "missing_identifier")

        user = self.users.find_by_email_or_phone(email, phone_number)
        if not user:
            logger.info("Login attempt for unknown user")
            return _failure(401, "Invalid credentials", "unknown_user")

        if password is None:
            identifier = email if channel == "email" else phone_number
            try:
                self.otp_manager.issue(identifier, channel)
            except ValueError as e:
                return _failure(400, str(e), "invalid_identifier")
            return {
                "success": True,
                "data": {"otpRequired": True, "message": f"Verification code sent to your {channel}"}
            }

        if not self.users.check_password(user, password):
            logger.warning(f"Invalid password for user {user['id']}")
            return _failure(401, "Invalid credentials", "bad_password")

        self.users.touch_login(user["id"])
        return {"success": True, "data": self._grant(user)}

    def verify_otp(self, email: Optional[str], phone_number: Optional[str], otp: str) -> Dict[str, Any]:
        channel = _channel_for(email, phone_number)
        if channel is None:
            return _failure(400, "Email or phone number is required", "missing_identifier")

        user = self.users.find_by_email_or_phone(email, phone_number)
        if not user:
            return _failure(404, "User not found", "unknown_user")

        identifier = email if channel == "email" else phone_number
        result = self.otp_manager.verify(identifier, channel, otp)
        if not result["valid"]:
            return _failure(400, result["message"], result["reason"])

        self.users.mark_verified(user["id"])
        user = self.users.touch_login(user["id"])
        return {"success": True, "data": self._grant(user)}

    def refresh(self, token: Optional[str]) -> Dict[str, Any]:
        if not token:
            return _failure(400, "Token is required", "missing_token")

        user = self.authenticate(token)
        if user is None:
            return _failure(401, "Invalid token", "invalid_token")

        self.revoke(token)
        return {"success": True, "data": self._grant(user)}

    def authenticate(self, token: str) -> Optional[Dict[str, Any]]:
        """Resolve a bearer token to its user, or None"""
        payload = self.jwt_manager.verify_token(token)
        if not payload or payload.get("jti") in self._revoked:
            return None
        return self.users.find_by_id(payload.get("sub"))

    def revoke(self, token: str) -> None:
        payload = self.jwt_manager.verify_token(token)
        if payload and payload.get("jti"):
            self._revoked[payload["jti"]] = int(payload.get("exp", 0))
        self._prune_revoked()

    def _prune_revoked(self) -> int:
        """Forget revocations of tokens that have expired on their own"""
        now = int(datetime.now(timezone.utc).timestamp())
        expired = [jti for jti, exp in self._revoked.items() if exp <= now]
        for jti in expired:
            del self._revoked[jti]
        return len(expired)

    def request_password_reset(self, email: str) -> Dict[str, Any]:
        message = "If the account exists, a reset link has been sent"
        user = self.users.find_by_email_or_phone(email=email)
        if user:
            reset_token = secrets.token_urlsafe(32)
            self._reset_tokens[reset_token] = {
                "user_id": user["id"],
                "expires_at": datetime.now(timezone.utc) + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES)
            }
            if settings.DEBUG:
                logger.info(f"DEV MODE - password reset token for {user['email']}: {reset_token}")
        return {"success": True, "data": {"message": message}}

    def reset_password(self, token: str, new_password: str) -> Dict[str, Any]:
        entry = self._reset_tokens.pop(token, None)
        if not entry or datetime.now(timezone.utc) > entry["expires_at"]:
            return _failure(400, "Invalid or expired reset token", "invalid_reset_token")

        self.users.set_password(entry["user_id"], new_password)
        logger.info(f"Password reset for user {entry['user_id']}")
        return {"success": True, "data": {"message": "Password has been reset"}}

    def _grant(self, user: Dict[str, Any]) -> Dict[str, Any]:
        token = self.jwt_manager.generate_access_token(user)
        return {
            "token": token,
            "refreshToken": token,
            "user": self.users.to_public(user),
            "expiresIn": self.jwt_manager.expires_in,
        }
