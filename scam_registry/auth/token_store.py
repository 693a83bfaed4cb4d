"""
Persistent token storage
Keeps the bearer token and the persisted session snapshot across restarts
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from scam_registry.core.config import settings
from scam_registry.schemas.auth import SNAPSHOT_VERSION, SessionSnapshot

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"
SNAPSHOT_KEY = "auth-storage"


class TokenStore(ABC):
    """
    Abstract persistent store for credentials.
    Implementations must replace their whole document on every write.
    """

    @abstractmethod
    def _read(self) -> Dict[str, Any]:
        """Return the stored document"""
        pass

    @abstractmethod
    def _write(self, document: Dict[str, Any]) -> None:
        """Replace the stored document"""
        pass

    def get_token(self) -> Optional[str]:
        return self._read().get(TOKEN_KEY)

    def save_token(self, token: str) -> None:
        document = self._read()
        document[TOKEN_KEY] = token
        self._write(document)

    def remove_token(self) -> None:
        document = self._read()
        if document.pop(TOKEN_KEY, None) is not None:
            self._write(document)

    def load_snapshot(self) -> Optional[SessionSnapshot]:
        """
        Load the persisted session snapshot

        Returns:
            Snapshot, or None when missing, malformed or from a newer version
        """
        raw = self._read().get(SNAPSHOT_KEY)
        if not raw:
            return None
        try:
            snapshot = SessionSnapshot.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Discarding malformed session snapshot: {str(e)}")
            return None
        if snapshot.version > SNAPSHOT_VERSION:
            logger.warning(f"Ignoring session snapshot version {snapshot.version}")
            return None
        return snapshot

    def save_snapshot(self, snapshot: SessionSnapshot) -> None:
        document = self._read()
        document[SNAPSHOT_KEY] = snapshot.model_dump(mode="json", by_alias=True)
        self._write(document)

    def clear(self) -> None:
        self._write({})


class MemoryTokenStore(TokenStore):
    """Process-local store, used in tests and for ephemeral sessions"""

    def __init__(self, token: Optional[str] = None):
        self._document: Dict[str, Any] = {}
        if token:
            self._document[TOKEN_KEY] = token

    def _read(self) -> Dict[str, Any]:
        return json.loads(json.dumps(self._document))

    def _write(self, document: Dict[str, Any]) -> None:
        self._document = json.loads(json.dumps(document))


class FileTokenStore(TokenStore):
    """JSON file store written atomically through a temp file"""

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path or settings.TOKEN_STORE_PATH).expanduser()

    def _read(self) -> Dict[str, Any]:
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                document = json.load(fh)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.error(f"Error reading token store {self.path}: {str(e)}")
            return {}

        if not isinstance(document, dict):
            logger.warning(f"Token store {self.path} does not hold an object, ignoring")
            return {}
        return document

    def _write(self, document: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".auth-", suffix=".tmp", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
