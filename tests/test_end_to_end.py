import httpx
import pytest
from unittest.mock import patch

from main import create_app
from scam_registry.auth.otp_challenge import OTPChallenge
from scam_registry.auth.session_manager import SessionManager
from scam_registry.auth.token_store import FileTokenStore, MemoryTokenStore
from scam_registry.routers.auth import get_auth_service
from scam_registry.services.auth_gateway import AuthGateway
from scam_registry.services.auth_service import AuthService


@pytest.fixture
def app():
    service = AuthService()
    application = create_app()
    application.dependency_overrides[get_auth_service] = lambda: service
    with patch("scam_registry.auth.otp_manager.secrets.randbelow", return_value=382913):
        yield application


def make_gateway(app, store):
    return AuthGateway(store, base_url="http://testserver/api", transport=httpx.ASGITransport(app=app))


@pytest.mark.asyncio
async def test_register_verify_restore_and_logout(app, tmp_path):
    store = FileTokenStore(tmp_path / "auth-storage.json")

    async with make_gateway(app, store) as gateway:
        session = SessionManager(gateway)
        await session.initialize()
        assert session.is_authenticated is False

        assert await session.register("a@b.com") is True
        challenge = OTPChallenge(session, email="a@b.com", on_resend=session.register)

        assert await challenge.enter("482913") is True
        assert session.is_authenticated is True
        assert session.user.email == "a@b.com"
        assert store.get_token() == session.token

        assert await session.refresh_token() is True
        refreshed = session.token
        assert store.get_token() == refreshed

    # a fresh client picks the session back up from disk
    async with make_gateway(app, FileTokenStore(tmp_path / "auth-storage.json")) as gateway:
        restored = SessionManager(gateway)
        await restored.initialize()

        assert restored.is_authenticated is True
        assert restored.token == refreshed
        assert restored.user.email == "a@b.com"

        restored.logout()
        await restored.drain()

        assert restored.is_authenticated is False
        assert gateway.get_token() is None

        # the server revoked the token too
        response = await gateway.logout(token=refreshed)
        assert response.success is False
        assert response.error.message == "Invalid or expired token"


@pytest.mark.asyncio
async def test_wrong_code_reports_gateway_error(app):
    async with make_gateway(app, MemoryTokenStore()) as gateway:
        session = SessionManager(gateway)
        await session.register(None, "5551234567")
        challenge = OTPChallenge(session, phone_number="5551234567")

        assert await challenge.enter("111111") is False
        assert session.error == "Invalid OTP. 2 attempts remaining."
        assert session.is_authenticated is False
        assert challenge.closed is False
