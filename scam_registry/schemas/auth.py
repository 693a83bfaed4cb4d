"""
Authentication schemas shared by the session layer and the auth gateway
"""

from enum import Enum
from typing import Any, Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")

UserRole = Literal["user", "member", "moderator", "admin"]

# Wire format is camelCase, attributes are snake_case
CAMEL_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    coerce_numbers_to_str=True,
)


class User(BaseModel):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    phone_number: Optional[str] = None
    role: UserRole = "user"
    is_verified: bool = False
    profile_image: Optional[str] = None
    created_at: Optional[str] = None
    last_login: Optional[str] = None

    model_config = CAMEL_CONFIG


class AuthPayload(BaseModel):
    """Token grant returned by login, verify-otp and refresh"""
    token: Optional[str] = None
    refresh_token: Optional[str] = None
    user: Optional[User] = None
    expires_in: Optional[int] = None
    otp_required: bool = False
    message: Optional[str] = None

    model_config = CAMEL_CONFIG


class MessagePayload(BaseModel):
    message: Optional[str] = None

    model_config = CAMEL_CONFIG


class ApiError(BaseModel):
    message: str
    code: Optional[str] = None
    details: Optional[Any] = None

    model_config = ConfigDict(coerce_numbers_to_str=True)


class ApiResponse(BaseModel, Generic[T]):
    """Envelope every gateway call resolves to"""
    success: bool
    data: Optional[T] = None
    error: Optional[ApiError] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    phone_number: Optional[str] = None

    model_config = CAMEL_CONFIG


class RegisterRequest(BaseModel):
    email: Optional[str] = None
    phone_number: Optional[str] = None
    password: Optional[str] = None

    model_config = CAMEL_CONFIG


class VerifyOTPRequest(BaseModel):
    email: Optional[str] = None
    phone_number: Optional[str] = None
    otp: str

    model_config = CAMEL_CONFIG


class RefreshRequest(BaseModel):
    token: Optional[str] = None
    refresh_token: Optional[str] = None

    model_config = CAMEL_CONFIG


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = None
    phone_number: Optional[str] = None
    profile_image: Optional[str] = None

    model_config = CAMEL_CONFIG


class PasswordResetRequest(BaseModel):
    email: str


class ResetPasswordRequest(BaseModel):
    token: str
    new_password: str = Field(..., min_length=1)

    model_config = CAMEL_CONFIG


class SessionPhase(str, Enum):
    UNKNOWN = "unknown"
    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


class SessionState(BaseModel):
    """Read-only view of the session handed to listeners"""
    user: Optional[User] = None
    token: Optional[str] = None
    is_authenticated: bool = False
    is_loading: bool = False
    error: Optional[str] = None
    is_initialized: bool = False
    requires_otp: bool = False
    phase: SessionPhase = SessionPhase.UNKNOWN

    model_config = ConfigDict(frozen=True)


SNAPSHOT_VERSION = 1


class SessionSnapshot(BaseModel):
    """Persisted subset of the session, versioned for forward compatibility"""
    version: int = SNAPSHOT_VERSION
    user: Optional[User] = None
    token: Optional[str] = None
    is_authenticated: bool = False
    is_initialized: bool = False

    model_config = CAMEL_CONFIG
