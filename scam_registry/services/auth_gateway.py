"""
Auth Gateway client
Async REST client for the /auth endpoints, normalizing every outcome
into an ApiResponse envelope
"""

import logging
from typing import Any, Dict, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from scam_registry.auth.token_store import TokenStore
from scam_registry.core.config import settings
from scam_registry.schemas.auth import (
    ApiError,
    ApiResponse,
    AuthPayload,
    LoginRequest,
    MessagePayload,
    ProfileUpdateRequest,
    RegisterRequest,
    ResetPasswordRequest,
    User,
    VerifyOTPRequest
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

GENERIC_ERROR = "An unexpected error occurred"


class AuthGateway:
    """
    Client for the Auth Gateway REST API.
    Never raises for HTTP or transport failures; those come back as
    ApiResponse(success=False, error=...).
    """

    def __init__(
        self,
        store: TokenStore,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.store = store
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else settings.API_TIMEOUT_SECONDS,
            headers={"Content-Type": "application/json"},
            transport=transport
        )

    async def __aenter__(self) -> "AuthGateway":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # Auth endpoints

    async def login(self, email: Optional[str] = None, password: Optional[str] = None,
                    phone_number: Optional[str] = None) -> ApiResponse[AuthPayload]:
        body = LoginRequest(email=email, password=password, phone_number=phone_number)
        return await self._request("POST", "/auth/login", AuthPayload, json=self._dump(body))

    async def register(self, email: Optional[str] = None, phone_number: Optional[str] = None,
                       password: Optional[str] = None) -> ApiResponse[MessagePayload]:
        body = RegisterRequest(email=email, phone_number=phone_number, password=password)
        return await self._request("POST", "/auth/register", MessagePayload, json=self._dump(body))

    async def verify_otp(self, otp: str, email: Optional[str] = None,
                         phone_number: Optional[str] = None) -> ApiResponse[AuthPayload]:
        body = VerifyOTPRequest(email=email, phone_number=phone_number, otp=otp)
        return await self._request("POST", "/auth/verify-otp", AuthPayload, json=self._dump(body))

    async def refresh_token(self, token: str) -> ApiResponse[AuthPayload]:
        return await self._request("POST", "/auth/refresh", AuthPayload, json={"token": token})

    async def logout(self, token: Optional[str] = None) -> ApiResponse[MessagePayload]:
        return await self._request("POST", "/auth/logout", MessagePayload, token=token)

    async def get_profile(self) -> ApiResponse[User]:
        return await self._request("GET", "/auth/profile", User)

    async def update_profile(self, **fields: Any) -> ApiResponse[User]:
        body = ProfileUpdateRequest(**fields)
        return await self._request("PATCH", "/auth/profile", User, json=self._dump(body))

    async def request_password_reset(self, email: str) -> ApiResponse[MessagePayload]:
        return await self._request("POST", "/auth/forgot-password", MessagePayload, json={"email": email})

    async def reset_password(self, token: str, new_password: str) -> ApiResponse[MessagePayload]:
        body = ResetPasswordRequest(token=token, new_password=new_password)
        return await self._request("POST", "/auth/reset-password", MessagePayload, json=self._dump(body))

    # Persistent store contract

    def save_token(self, token: str) -> None:
        self.store.save_token(token)

    def get_token(self) -> Optional[str]:
        return self.store.get_token()

    def remove_token(self) -> None:
        self.store.remove_token()

    # Internals

    @staticmethod
    def _dump(body: BaseModel) -> Dict[str, Any]:
        return body.model_dump(by_alias=True, exclude_none=True)

    async def _request(self, method: str, url: str, model: Type[M],
                       json: Optional[Dict[str, Any]] = None,
                       token: Optional[str] = None) -> ApiResponse[M]:
        headers = {}
        ambient = token is None
        if ambient:
            token = self.store.get_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = await self._client.request(method, url, json=json, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"API request error {method} {url}: {str(e)}")
            return ApiResponse[model](
                success=False,
                error=ApiError(message=str(e) or GENERIC_ERROR, code=type(e).__name__)
            )

        if response.status_code == 401 and ambient:
            # Token expired or invalid
            logger.warning(f"Unauthorized response from {url}, discarding stored token")
            self.store.remove_token()

        return self._normalize(response, model)

    def _normalize(self, response: httpx.Response, model: Type[M]) -> ApiResponse[M]:
        try:
            body = response.json() if response.content else None
        except ValueError:
            body = None

        if not response.is_success:
            message, code = self._extract_error(body)
            return ApiResponse[model](
                success=False,
                error=ApiError(
                    message=message or f"Request failed with status code {response.status_code}",
                    code=code or str(response.status_code),
                    details=body
                )
            )

        if isinstance(body, dict) and "success" in body:
            envelope = dict(body)
            if isinstance(envelope.get("error"), str):
                envelope["error"] = {"message": envelope["error"]}
            elif not envelope["success"] and not envelope.get("error"):
                envelope["error"] = {"message": envelope.get("message") or GENERIC_ERROR}
        else:
            envelope = {"success": True, "data": body}

        try:
            return ApiResponse[model].model_validate(envelope)
        except ValidationError as e:
            logger.error(f"Malformed response from {response.request.url}: {str(e)}")
            return ApiResponse[model](
                success=False,
                error=ApiError(message="Malformed response from server", code="invalid_response")
            )

    @staticmethod
    def _extract_error(body: Any):
        if not isinstance(body, dict):
            return None, None
        error = body.get("error")
        if isinstance(error, dict):
            message, code = error.get("message"), error.get("code")
        else:
            message, code = body.get("message") or error, body.get("code")
        return (str(message) if message else None), (str(code) if code is not None else None)
