from .auth import (
    ApiError,
    ApiResponse,
    AuthPayload,
    SessionPhase,
    SessionSnapshot,
    SessionState,
    User
)
from .forms import LoginForm, OTPForm, RegisterForm, validate_form

__all__ = [
    "ApiError",
    "ApiResponse",
    "AuthPayload",
    "SessionPhase",
    "SessionSnapshot",
    "SessionState",
    "User",
    "LoginForm",
    "OTPForm",
    "RegisterForm",
    "validate_form"
]
