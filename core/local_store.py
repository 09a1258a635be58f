"""Durable key/value storage for the OAuth session and the spreadsheet id."""
from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Dict, Iterable, Optional

from core import app_paths

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "google_access_token"
EXPIRES_AT_KEY = "google_token_expires_at"
SHEET_ID_KEY = "google_sheet_id"

SESSION_KEYS = (ACCESS_TOKEN_KEY, EXPIRES_AT_KEY)
ALL_KEYS = (ACCESS_TOKEN_KEY, EXPIRES_AT_KEY, SHEET_ID_KEY)

SESSION_FILENAME = "session.json"


class MemoryStore:
    """Process-local store used by tests and short-lived tools."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._values: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = str(value)

    def remove(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)

    def clear(self, keys: Iterable[str] = ALL_KEYS) -> None:
        with self._lock:
            for key in keys:
                self._values.pop(key, None)

    def snapshot(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._values)


class JsonFileStore(MemoryStore):
    """Persist string values in a small JSON document.

    The whole document is rewritten on every change.  Concurrent writers in
    other processes are not coordinated; the last write wins.
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = path or app_paths.data_path(SESSION_FILENAME)
        if self._path.parent and not self._path.parent.exists():
            self._path.parent.mkdir(parents=True, exist_ok=True)
        super().__init__(self._load())

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Session file %s could not be read: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            return {}
        return {str(key): str(value) for key, value in payload.items() if value is not None}

    def _flush(self) -> None:
        payload = json.dumps(self._values, indent=2)
        temp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        with temp_path.open("w", encoding="utf-8") as handle:
            handle.write(payload)
        os.replace(temp_path, self._path)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = str(value)
            self._flush()

    def remove(self, key: str) -> None:
        with self._lock:
            if self._values.pop(key, None) is not None:
                self._flush()

    def clear(self, keys: Iterable[str] = ALL_KEYS) -> None:
        with self._lock:
            removed = [self._values.pop(key, None) for key in keys]
            if any(value is not None for value in removed):
                self._flush()


__all__ = [
    "ACCESS_TOKEN_KEY",
    "ALL_KEYS",
    "EXPIRES_AT_KEY",
    "JsonFileStore",
    "MemoryStore",
    "SESSION_FILENAME",
    "SESSION_KEYS",
    "SHEET_ID_KEY",
]
