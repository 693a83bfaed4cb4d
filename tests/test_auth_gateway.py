import json

import httpx
import pytest

from scam_registry.auth.token_store import MemoryTokenStore
from scam_registry.services.auth_gateway import AuthGateway

BASE_URL = "http://gateway.test/api"

USER_BODY = {
    "id": "u1",
    "email": "a@b.com",
    "phoneNumber": "5551234567",
    "role": "member",
    "isVerified": True,
    "createdAt": "2024-01-01T00:00:00+00:00"
}


def make_gateway(handler, token=None):
    store = MemoryTokenStore(token=token)
    return AuthGateway(store, base_url=BASE_URL, transport=httpx.MockTransport(handler)), store


@pytest.mark.asyncio
async def test_login_sends_camel_case_body_and_parses_grant():
    captured = {}

    def handler(request):
        captured["url"] = str(request.url)
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={
            "success": True,
            "data": {"token": "tok-1", "refreshToken": "tok-1", "user": USER_BODY, "expiresIn": 86400}
        })

    gateway, _ = make_gateway(handler)
    async with gateway:
        response = await gateway.login(phone_number="5551234567", password="pw")

    assert captured["url"] == f"{BASE_URL}/auth/login"
    assert captured["body"] == {"phoneNumber": "5551234567", "password": "pw"}
    assert response.success is True
    assert response.data.token == "tok-1"
    assert response.data.user.phone_number == "5551234567"
    assert response.data.user.is_verified is True


@pytest.mark.asyncio
async def test_string_error_is_normalized():
    def handler(request):
        return httpx.Response(400, json={"success": False, "error": "User already exists with this email or phone"})

    gateway, _ = make_gateway(handler)
    async with gateway:
        response = await gateway.register(email="a@b.com")

    assert response.success is False
    assert response.error.message == "User already exists with this email or phone"
    assert response.error.code == "400"


@pytest.mark.asyncio
async def test_structured_error_keeps_code():
    def handler(request):
        return httpx.Response(422, json={
            "success": False,
            "error": {"message": "Invalid request", "code": "validation_error"}
        })

    gateway, _ = make_gateway(handler)
    async with gateway:
        response = await gateway.verify_otp("123456", email="a@b.com")

    assert response.error.message == "Invalid request"
    assert response.error.code == "validation_error"


@pytest.mark.asyncio
async def test_error_without_body_reports_status():
    def handler(request):
        return httpx.Response(500)

    gateway, _ = make_gateway(handler)
    async with gateway:
        response = await gateway.request_password_reset("a@b.com")

    assert response.success is False
    assert response.error.message == "Request failed with status code 500"


@pytest.mark.asyncio
async def test_transport_error_becomes_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused")

    gateway, _ = make_gateway(handler)
    async with gateway:
        response = await gateway.login(email="a@b.com", password="pw")

    assert response.success is False
    assert response.error.message == "connection refused"
    assert response.error.code == "ConnectError"


@pytest.mark.asyncio
async def test_bare_body_is_wrapped():
    def handler(request):
        return httpx.Response(200, json=USER_BODY)

    gateway, _ = make_gateway(handler, token="tok-1")
    async with gateway:
        response = await gateway.get_profile()

    assert response.success is True
    assert response.data.id == "u1"


@pytest.mark.asyncio
async def test_malformed_payload_is_failure():
    def handler(request):
        return httpx.Response(200, json={"success": True, "data": {"token": "tok-1", "user": {"email": "a@b.com"}}})

    gateway, _ = make_gateway(handler)
    async with gateway:
        response = await gateway.login(email="a@b.com", password="pw")

    assert response.success is False
    assert response.error.code == "invalid_response"


@pytest.mark.asyncio
async def test_stored_token_is_sent_as_bearer():
    seen = {}

    def handler(request):
        seen["authorization"] = request.headers.get("Authorization")
        return httpx.Response(200, json={"success": True, "data": USER_BODY})

    gateway, _ = make_gateway(handler, token="tok-1")
    async with gateway:
        await gateway.get_profile()

    assert seen["authorization"] == "Bearer tok-1"


@pytest.mark.asyncio
async def test_unauthorized_response_removes_stored_token():
    def handler(request):
        return httpx.Response(401, json={"success": False, "error": "Invalid or expired token"})

    gateway, store = make_gateway(handler, token="tok-1")
    async with gateway:
        response = await gateway.get_profile()

    assert response.success is False
    assert response.error.message == "Invalid or expired token"
    assert store.get_token() is None


@pytest.mark.asyncio
async def test_explicit_token_does_not_touch_store_on_401():
    seen = {}

    def handler(request):
        seen["authorization"] = request.headers.get("Authorization")
        return httpx.Response(401, json={"success": False, "error": "Invalid or expired token"})

    gateway, store = make_gateway(handler, token="tok-new")
    async with gateway:
        await gateway.logout(token="tok-old")

    assert seen["authorization"] == "Bearer tok-old"
    assert store.get_token() == "tok-new"


@pytest.mark.asyncio
async def test_refresh_posts_token():
    captured = {}

    def handler(request):
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": True, "data": {"token": "tok-2", "user": USER_BODY}})

    gateway, _ = make_gateway(handler)
    async with gateway:
        response = await gateway.refresh_token("tok-1")

    assert captured["body"] == {"token": "tok-1"}
    assert response.data.token == "tok-2"


def test_store_contract_delegates():
    store = MemoryTokenStore()
    gateway = AuthGateway(store, base_url=BASE_URL, transport=httpx.MockTransport(lambda request: httpx.Response(204)))

    gateway.save_token("tok-1")
    assert store.get_token() == "tok-1"
    assert gateway.get_token() == "tok-1"
    gateway.remove_token()
    assert store.get_token() is None
