from .config import settings
from .logging import configure_logging, mask_token
from .security import get_password_hash, verify_password

__all__ = [
    "settings",
    "configure_logging",
    "mask_token",
    "get_password_hash",
    "verify_password"
]
