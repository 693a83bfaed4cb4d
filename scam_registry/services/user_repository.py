"""
In-memory user repository for the development auth gateway
Handles user lookup, creation, verification and profile updates
"""

import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import logging

from scam_registry.core.security import get_password_hash, verify_password

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("name", "phone", "profile_image")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _normalize_phone(phone: Optional[str]) -> Optional[str]:
    if not phone:
        return None
    return re.sub(r'[^\d+]', '', phone)


class UserRepository:
    """Users keyed by id; email and phone are unique"""

    def __init__(self):
        self._users: Dict[str, Dict[str, Any]] = {}

    def create_user(self, email: Optional[str] = None, phone: Optional[str] = None,
                    password: Optional[str] = None, role: str = "member",
                    name: Optional[str] = None) -> Dict[str, Any]:
        """Create a new, unverified user"""
        if not email and not phone:
            raise ValueError("Cannot create user without email or phone number")

        now = _now_iso()
        user = {
            "id": str(uuid.uuid4()),
            "email": email.lower().strip() if email else None,
            "phone": _normalize_phone(phone),
            "password_hash": get_password_hash(password) if password else None,
            "role": role,
            "name": name,
            "profile_image": None,
            "is_verified": False,
            "created_at": now,
            "updated_at": now,
            "last_login": None,
        }
        self._users[user["id"]] = user
        logger.info(f"Created user {user['id']} ({user['email'] or user['phone']})")
        return user

    def find_by_id(self, user_id: Optional[str]) -> Optional[Dict[str, Any]]:
        if not user_id:
            return None
        return self._users.get(user_id)

    def find_by_email_or_phone(self, email: Optional[str] = None,
                               phone: Optional[str] = None) -> Optional[Dict[str, Any]]:
        email = email.lower().strip() if email else None
        phone = _normalize_phone(phone)
        for user in self._users.values():
            if email and user["email"] == email:
                return user
            if phone and user["phone"] == phone:
                return user
        return None

    def check_password(self, user: Dict[str, Any], password: Optional[str]) -> bool:
        return verify_password(password or "", user.get("password_hash") or "")

    def mark_verified(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self._update(user_id, {"is_verified": True})

    def set_password(self, user_id: str, password: str) -> Optional[Dict[str, Any]]:
        return self._update(user_id, {"password_hash": get_password_hash(password)})

    def update_profile(self, user_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        allowed = {key: value for key, value in changes.items() if key in PROFILE_FIELDS}
        if "phone" in allowed:
            allowed["phone"] = _normalize_phone(allowed["phone"])
        return self._update(user_id, allowed)

    def touch_login(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self._update(user_id, {"last_login": _now_iso()})

    def _update(self, user_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        user = self._users.get(user_id)
        if user is None:
            return None
        user.update(changes)
        user["updated_at"] = _now_iso()
        return user

    @staticmethod
    def to_public(user: Dict[str, Any]) -> Dict[str, Any]:
        """Serialize a user for API responses (camelCase, no secrets)"""
        return {
            "id": user["id"],
            "email": user["email"],
            "name": user.get("name"),
            "phoneNumber": user.get("phone"),
            "role": user["role"],
            "isVerified": user["is_verified"],
            "profileImage": user.get("profile_image"),
            "createdAt": user["created_at"],
            "lastLogin": user.get("last_login"),
        }
