"""
Logging setup for the scam registry
Applies LOG_LEVEL / LOG_FILE from settings to the root logger
"""

import logging
from pathlib import Path
from typing import Optional

from scam_registry.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """
    Configure root logging handlers

    Args:
        level: Log level name, defaults to settings.LOG_LEVEL
        log_file: Optional file path, defaults to settings.LOG_FILE
    """
    level = (level or settings.LOG_LEVEL).upper()
    log_file = log_file or settings.LOG_FILE

    handlers = [logging.StreamHandler()]
    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
    logging.getLogger(__name__).info(f"Logging configured at {level}")


def mask_token(token: Optional[str]) -> str:
    """Shorten a credential for log output"""
    if not token:
        return "<none>"
    return f"{token[:8]}..."
