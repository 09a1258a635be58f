from __future__ import annotations

import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.local_store import (
    ACCESS_TOKEN_KEY,
    ALL_KEYS,
    EXPIRES_AT_KEY,
    SESSION_KEYS,
    SHEET_ID_KEY,
    JsonFileStore,
    MemoryStore,
)


def test_memory_store_clear_removes_only_requested_keys() -> None:
    store = MemoryStore({ACCESS_TOKEN_KEY: "tok", EXPIRES_AT_KEY: "1", SHEET_ID_KEY: "abc", "other": "x"})

    store.clear(SESSION_KEYS)
    assert store.snapshot() == {SHEET_ID_KEY: "abc", "other": "x"}

    store.clear(ALL_KEYS)
    assert store.snapshot() == {"other": "x"}


def test_memory_store_stores_strings() -> None:
    store = MemoryStore()
    store.set(EXPIRES_AT_KEY, 1234)  # type: ignore[arg-type]

    assert store.get(EXPIRES_AT_KEY) == "1234"
    store.remove(EXPIRES_AT_KEY)
    store.remove(EXPIRES_AT_KEY)
    assert store.get(EXPIRES_AT_KEY) is None


def test_json_file_store_persists_between_instances(tmp_path: Path) -> None:
    path = tmp_path / "state" / "session.json"
    store = JsonFileStore(path)
    store.set(ACCESS_TOKEN_KEY, "ya29.token")
    store.set(SHEET_ID_KEY, "sheet-1")

    reopened = JsonFileStore(path)
    assert reopened.get(ACCESS_TOKEN_KEY) == "ya29.token"
    assert reopened.get(SHEET_ID_KEY) == "sheet-1"

    reopened.clear()
    assert json.loads(path.read_text(encoding="utf-8")) == {}
    assert not path.with_suffix(".json.tmp").exists()


def test_json_file_store_ignores_corrupt_file(tmp_path: Path) -> None:
    path = tmp_path / "session.json"
    path.write_text("{not json", encoding="utf-8")

    store = JsonFileStore(path)

    assert store.snapshot() == {}
    store.set(SHEET_ID_KEY, "sheet-2")
    assert json.loads(path.read_text(encoding="utf-8")) == {SHEET_ID_KEY: "sheet-2"}
