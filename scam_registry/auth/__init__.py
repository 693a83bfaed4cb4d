"""
Authentication module for the Community Scam Registry
Handles client session state, OTP challenges, token storage and JWT tokens
"""

from .otp_challenge import OTPChallenge, format_time, sanitize_code
from .otp_manager import SecureOTPManager
from .session_manager import SessionManager
from .jwt_manager import JWTManager
from .token_store import FileTokenStore, MemoryTokenStore, TokenStore

__all__ = [
    'SessionManager',
    'OTPChallenge',
    'sanitize_code',
    'format_time',
    'TokenStore',
    'MemoryTokenStore',
    'FileTokenStore',
    'SecureOTPManager',
    'JWTManager'
]
