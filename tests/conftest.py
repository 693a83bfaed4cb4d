import pytest
from unittest.mock import AsyncMock, MagicMock

from scam_registry.auth.session_manager import SessionManager
from scam_registry.auth.token_store import MemoryTokenStore
from scam_registry.schemas.auth import ApiError, ApiResponse, AuthPayload, MessagePayload, User

GATEWAY_METHODS = (
    "login",
    "register",
    "verify_otp",
    "refresh_token",
    "logout",
    "get_profile",
    "update_profile",
    "request_password_reset",
    "reset_password",
)


def make_user(user_id="u1", email="a@b.com", role="member", **extra):
    return User(id=user_id, email=email, role=role, is_verified=True, **extra)


def grant(token="tok-1", user=None):
    return ApiResponse[AuthPayload](
        success=True,
        data=AuthPayload(token=token, user=user or make_user(), expires_in=86400)
    )


def failure(message="Request failed", code=None):
    return ApiResponse[AuthPayload](success=False, error=ApiError(message=message, code=code))


def ok_message(message="ok"):
    return ApiResponse[MessagePayload](success=True, data=MessagePayload(message=message))


@pytest.fixture
def store():
    return MemoryTokenStore()


@pytest.fixture
def gateway(store):
    gw = MagicMock()
    gw.store = store
    for name in GATEWAY_METHODS:
        setattr(gw, name, AsyncMock())
    gw.logout.return_value = ok_message("Logged out successfully")
    return gw


@pytest.fixture
def session(gateway, store):
    return SessionManager(gateway, store)
