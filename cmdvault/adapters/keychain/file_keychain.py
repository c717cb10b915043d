"""File-backed platform secret store.

Layout: ``{"<scope>": {"<account>": "<base64 bytes>"}}`` in a single JSON file
readable only by the owner (mode 0600). Writes go through a temp file and
``os.replace`` so a crash never leaves a half-written keychain.
"""
import base64
import json
import logging
import os
import threading
from pathlib import Path
from typing import Dict, Optional

from cmdvault.domain.secrets.ports import PlatformSecretStore

logger = logging.getLogger(__name__)


class FileKeychain(PlatformSecretStore):
    def __init__(self, path: str):
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, Dict[str, str]]:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Keychain file {self.path} is malformed")
        return data

    def _save(self, data: Dict[str, Dict[str, str]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True)
        os.chmod(tmp, 0o600)
        os.replace(tmp, self.path)

    def put(self, scope: str, account: str, data: bytes) -> None:
        with self._lock:
            items = self._load()
            items.setdefault(scope, {})[account] = base64.b64encode(data).decode("ascii")
            self._save(items)
        logger.info(f"Stored key item {scope}/{account}")

    def get(self, scope: str, account: str) -> Optional[bytes]:
        with self._lock:
            encoded = self._load().get(scope, {}).get(account)
        if encoded is None:
            return None
        return base64.b64decode(encoded)

    def delete(self, scope: str, account: str) -> None:
        with self._lock:
            items = self._load()
            if account in items.get(scope, {}):
                del items[scope][account]
                self._save(items)
                logger.info(f"Deleted key item {scope}/{account}")
