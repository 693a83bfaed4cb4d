"""
Auth Router
Development implementation of the /auth endpoints consumed by the session manager
"""

from fastapi import APIRouter, HTTPException, Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Any, Dict, Optional
import logging

from scam_registry.schemas.auth import (
    LoginRequest,
    PasswordResetRequest,
    ProfileUpdateRequest,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    VerifyOTPRequest
)
from scam_registry.services.auth_service import AuthService

logger = logging.getLogger(__name__)

router = APIRouter()
security = HTTPBearer(auto_error=False)

# Global auth service instance
auth_service = AuthService()

def get_auth_service() -> AuthService:
    return auth_service

def _respond(result: Dict[str, Any]) -> Dict[str, Any]:
    """Turn a service result into a response body or an HTTPException"""
    if not result["success"]:
        raise HTTPException(status_code=result["status_code"], detail=result["message"])
    return {"success": True, "data": result["data"]}

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    service: AuthService = Depends(get_auth_service)
) -> Dict[str, Any]:
    """
    Dependency to resolve the bearer token to a user.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = service.authenticate(credentials.credentials)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user

@router.post("/register")
async def register(request: RegisterRequest, service: AuthService = Depends(get_auth_service)):
    """
    Create an unverified account and send an OTP to the email or phone number.
    No token is issued until the OTP is verified.
    """
    return _respond(service.register(request.email, request.phone_number, request.password))

@router.post("/login")
async def login(request: LoginRequest, service: AuthService = Depends(get_auth_service)):
    """
    Password login, or OTP handoff when no password is supplied.
    """
    return _respond(service.login(request.email, request.phone_number, request.password))

@router.post("/verify-otp")
async def verify_otp(request: VerifyOTPRequest, service: AuthService = Depends(get_auth_service)):
    """
    Verify an OTP and grant a token.
    """
    return _respond(service.verify_otp(request.email, request.phone_number, request.otp))

@router.post("/refresh")
async def refresh(request: RefreshRequest, service: AuthService = Depends(get_auth_service)):
    """
    Exchange a valid token for a new one. The old token is revoked.
    """
    return _respond(service.refresh(request.token or request.refresh_token))

@router.post("/logout")
async def logout(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    user: Dict[str, Any] = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service)
):
    service.revoke(credentials.credentials)
    logger.info(f"User {user['id']} logged out")
    return {"success": True, "data": {"message": "Logged out successfully"}}

@router.get("/profile")
async def get_profile(
    user: Dict[str, Any] = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service)
):
    return {"success": True, "data": service.users.to_public(user)}

@router.patch("/profile")
async def update_profile(
    request: ProfileUpdateRequest,
    user: Dict[str, Any] = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service)
):
    changes = request.model_dump(exclude_none=True)
    if "phone_number" in changes:
        changes["phone"] = changes.pop("phone_number")
    updated = service.users.update_profile(user["id"], changes)
    return {"success": True, "data": service.users.to_public(updated)}

@router.post("/forgot-password")
async def forgot_password(request: PasswordResetRequest, service: AuthService = Depends(get_auth_service)):
    return _respond(service.request_password_reset(request.email))

@router.post("/reset-password")
async def reset_password(request: ResetPasswordRequest, service: AuthService = Depends(get_auth_service)):
    return _respond(service.reset_password(request.token, request.new_password))
