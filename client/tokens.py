"""
Token storage for the API client. MemoryTokenStore keeps tokens for the life
of the process, FileTokenStore survives restarts (the CLI/desktop analogue of
browser localStorage).
"""
from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from typing import Optional


class MemoryTokenStore:
    def __init__(self, access_token: Optional[str] = None, refresh_token: Optional[str] = None):
        self._lock = threading.Lock()
        self.access_token = access_token
        self.refresh_token = refresh_token

    def set(self, access_token: Optional[str] = None, refresh_token: Optional[str] = None) -> None:
        """Store the given tokens; a None argument leaves that token unchanged."""
        with self._lock:
            if access_token is not None:
                self.access_token = access_token
            if refresh_token is not None:
                self.refresh_token = refresh_token
            self._persist()

    def clear(self) -> None:
        with self._lock:
            self.access_token = None
            self.refresh_token = None
            self._persist()

    @property
    def authenticated(self) -> bool:
        return bool(self.access_token or self.refresh_token)

    def _persist(self) -> None:
        pass


class FileTokenStore(MemoryTokenStore):
    def __init__(self, path):
        self.path = Path(path)
        data = {}
        if self.path.exists():
            try:
                data = json.loads(self.path.read_text(encoding="utf-8"))
            except (OSError, ValueError):
                data = {}
        super().__init__(data.get("access_token"), data.get("refresh_token"))

    def _persist(self) -> None:
        if not self.access_token and not self.refresh_token:
            if self.path.exists():
                self.path.unlink()
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(
            json.dumps({"access_token": self.access_token, "refresh_token": self.refresh_token}),
            encoding="utf-8",
        )
        os.chmod(tmp, 0o600)
        os.replace(tmp, self.path)
