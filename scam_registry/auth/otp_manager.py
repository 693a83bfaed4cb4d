"""
Secure OTP Manager for the development auth gateway
Generates, stores (hashed) and verifies one-time codes per email / phone number
"""

import secrets
import hashlib
import re
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional, Literal
import logging

from scam_registry.core.config import settings

logger = logging.getLogger(__name__)

OTPChannel = Literal["email", "sms"]

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

class SecureOTPManager:
    """
    OTP manager supporting email and SMS identifiers.
    Only salted hashes are kept; the plain code is returned once for delivery.
    """

    def __init__(self, validity_seconds: int = settings.OTP_VALIDITY_SECONDS,
                 max_attempts: int = settings.OTP_MAX_ATTEMPTS):
        self.max_attempts = max_attempts
        self.otp_validity_seconds = validity_seconds
        self._requests: Dict[str, Dict[str, Any]] = {}

    def issue(self, identifier: str, channel: OTPChannel) -> str:
        """
        Generate and store an OTP, replacing any pending one for the identifier

        Args:
            identifier: Email address or phone number
            channel: "email" or "sms"

        Returns:
            The plain 6-digit code, to be delivered and never stored
        """
        if not self._validate_identifier(identifier, channel):
            raise ValueError(f"Invalid {channel} format: {identifier}")

        self.cleanup_expired()

        # 100000-999999
        otp_code = str(secrets.randbelow(900000) + 100000)
        salt = secrets.token_hex(16)
        formatted_identifier = self.format_identifier(identifier, channel)

        self._requests[formatted_identifier] = {
            "otp_id": secrets.token_hex(8),
            "identifier": formatted_identifier,
            "channel": channel,
            "otp_hash": self._hash(otp_code, salt),
            "salt": salt,
            "expires_at": _utcnow() + timedelta(seconds=self.otp_validity_seconds),
            "attempts_left": self.max_attempts,
            "created_at": _utcnow(),
        }

        logger.info(f"Generated OTP for {channel}: {formatted_identifier}")
        if settings.DEBUG:
            # Development mode - log OTP instead of sending
            logger.info(f"DEV MODE - {channel} OTP for {formatted_identifier}: {otp_code}")
        return otp_code

    def verify(self, identifier: str, channel: OTPChannel, user_otp: str) -> Dict[str, Any]:
        """
        Verify an OTP with expiry and attempt checks

        Returns:
            Dict with "valid", "reason", "message" and, for wrong codes,
            "attempts_remaining"
        """
        if not user_otp or not isinstance(user_otp, str):
            return {"valid": False, "reason": "invalid_input", "message": "Please provide a valid OTP code."}

        user_otp = user_otp.strip().replace(" ", "").replace("-", "")
        if not re.match(r'^\d{6}$', user_otp):
            return {"valid": False, "reason": "invalid_format", "message": "OTP must be 6 digits."}

        key = self.format_identifier(identifier, channel)
        stored_data = self._requests.get(key)
        if not stored_data:
            return {"valid": False, "reason": "not_found", "message": "Invalid or expired OTP"}

        if _utcnow() > stored_data["expires_at"]:
            self._requests.pop(key, None)
            return {"valid": False, "reason": "expired", "message": "OTP has expired. Please request a new one."}

        if stored_data["attempts_left"] <= 0:
            return {
                "valid": False,
                "reason": "max_attempts",
                "message": "Maximum verification attempts exceeded. Please request a new OTP."
            }

        provided_hash = self._hash(user_otp, stored_data["salt"])
        if secrets.compare_digest(provided_hash, stored_data["otp_hash"]):
            self._requests.pop(key, None)
            logger.info(f"OTP verified successfully for {channel}: {key}")
            return {"valid": True, "reason": "success", "message": "OTP verified successfully"}

        stored_data["attempts_left"] -= 1
        remaining_attempts = stored_data["attempts_left"]
        logger.warning(f"Invalid OTP attempt for {channel}: {key}, {remaining_attempts} attempts remaining")
        return {
            "valid": False,
            "reason": "invalid",
            "message": f"Invalid OTP. {remaining_attempts} attempts remaining.",
            "attempts_remaining": remaining_attempts
        }

    def get_request(self, identifier: str, channel: OTPChannel) -> Optional[Dict[str, Any]]:
        return self._requests.get(self.format_identifier(identifier, channel))

    def cleanup_expired(self) -> int:
        """Drop expired OTP requests, returning how many were removed"""
        now = _utcnow()
        expired = [key for key, data in self._requests.items() if data["expires_at"] < now]
        for key in expired:
            del self._requests[key]
        if expired:
            logger.info(f"Cleaned up {len(expired)} expired OTP records")
        return len(expired)

    @staticmethod
    def _hash(otp_code: str, salt: str) -> str:
        return hashlib.sha256(f"{otp_code}{salt}".encode()).hexdigest()

    def _validate_identifier(self, identifier: str, channel: OTPChannel) -> bool:
        """Validate email or phone number format"""
        if channel == "email":
            email_pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
            return bool(re.match(email_pattern, identifier.strip()))
        elif channel == "sms":
            phone = re.sub(r'[^\d+]', '', identifier)
            return bool(re.match(r'^\+?\d{10,15}$', phone))
        return False

    @staticmethod
    def format_identifier(identifier: str, channel: OTPChannel) -> str:
        """Format identifier for consistent storage"""
        if channel == "email":
            return identifier.lower().strip()
        elif channel == "sms":
            # Remove all non-digit characters except +
            return re.sub(r'[^\d+]', '', identifier)
        return identifier
