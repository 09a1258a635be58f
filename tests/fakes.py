"""In-memory stand-ins for the Google transport and the OAuth token client."""
from __future__ import annotations

import re
import sys
import threading
from concurrent.futures import Future
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import httplib2
from googleapiclient.errors import HttpError

from core.identity import TokenResponse

_ROW_PATTERN = re.compile(r"^[A-Z]+(\d+)")


def http_error(status: int, message: str) -> HttpError:
    """Build a real ``HttpError`` carrying a Google JSON error body."""

    body = '{"error": {"code": %d, "message": "%s"}}' % (status, message)
    return HttpError(httplib2.Response({"status": status}), body.encode("utf-8"))


def ready_future() -> "Future[None]":
    future: "Future[None]" = Future()
    future.set_result(None)
    return future


class FakeClock:
    """Callable epoch-millisecond clock that only moves when told to."""

    def __init__(self, now_ms: int = 1_700_000_000_000) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, millis: int) -> None:
        self.now_ms += millis


class FakeTransport:
    """Drive/Sheets capability surface backed by dictionaries.

    Like the real values API, reads drop trailing empty cells from each row.
    """

    def __init__(self) -> None:
        self.spreadsheets: Dict[str, Dict[str, Any]] = {}
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.failures: Dict[str, Exception] = {}
        self.token: Optional[str] = None
        self.load_count = 0
        self._counter = 0
        self._lock = threading.Lock()

    # helpers --------------------------------------------------------------
    def add_spreadsheet(
        self,
        title: str,
        tabs: Optional[Dict[str, List[List[Any]]]] = None,
        *,
        trashed: bool = False,
    ) -> str:
        with self._lock:
            self._counter += 1
            sheet_id = f"sheet-{self._counter}"
            self.spreadsheets[sheet_id] = {
                "title": title,
                "tabs": {name: [list(row) for row in rows] for name, rows in (tabs or {}).items()},
                "trashed": trashed,
            }
        return sheet_id

    def call_names(self) -> List[str]:
        return [name for name, _ in self.calls]

    def _record(self, name: str, *args: Any) -> None:
        with self._lock:
            self.calls.append((name, args))
        failure = self.failures.get(name)
        if failure is not None:
            raise failure

    def _sheet(self, sheet_id: str) -> Dict[str, Any]:
        sheet = self.spreadsheets.get(sheet_id)
        if sheet is None or sheet["trashed"]:
            raise http_error(404, f"Requested entity was not found: {sheet_id}")
        return sheet

    @staticmethod
    def _start_row(range_spec: str) -> int:
        match = _ROW_PATTERN.match(range_spec)
        return int(match.group(1)) if match else 1

    # transport surface ----------------------------------------------------
    def load(self) -> None:
        self.load_count += 1

    def set_token(self, token: Optional[str]) -> None:
        self.token = token

    def get_token(self) -> Optional[str]:
        return self.token

    def list_resources(
        self,
        name: str,
        mime_type: str = "",
        *,
        exclude_trashed: bool = True,
        order_by: str = "createdTime desc",
    ) -> List[Dict[str, str]]:
        self._record("list_resources", name, mime_type, exclude_trashed, order_by)
        matches = [
            {"id": sheet_id, "name": sheet["title"]}
            for sheet_id, sheet in self.spreadsheets.items()
            if sheet["title"] == name and not (exclude_trashed and sheet["trashed"])
        ]
        return list(reversed(matches))

    def create_resource(self, title: str, tab_titles: Sequence[str]) -> Dict[str, Optional[str]]:
        self._record("create_resource", title, tuple(tab_titles))
        sheet_id = self.add_spreadsheet(title, {tab: [] for tab in tab_titles})
        return {"id": sheet_id}

    def get_resource_metadata(self, resource_id: str) -> Dict[str, Any]:
        self._record("get_resource_metadata", resource_id)
        sheet = self._sheet(resource_id)
        return {"spreadsheetId": resource_id, "properties": {"title": sheet["title"]}}

    def read_range(self, resource_id: str, tab: str, range_spec: str) -> List[List[str]]:
        self._record("read_range", resource_id, tab, range_spec)
        rows = self._sheet(resource_id)["tabs"][tab]
        start = self._start_row(range_spec) - 1
        result = []
        for row in rows[start:]:
            cells = ["" if cell is None else str(cell) for cell in row]
            while cells and cells[-1] == "":
                cells.pop()
            result.append(cells)
        return result

    def append_row(self, resource_id: str, tab: str, range_spec: str, row: Sequence[Any]) -> Dict[str, Any]:
        self._record("append_row", resource_id, tab, range_spec, list(row))
        with self._lock:
            self._sheet(resource_id)["tabs"][tab].append(list(row))
        return {"updates": {"updatedRows": 1}}

    def batch_write_ranges(self, resource_id: str, writes: Sequence[Any]) -> Dict[str, Any]:
        self._record("batch_write_ranges", resource_id, list(writes))
        sheet = self._sheet(resource_id)
        for write in writes:
            rows = sheet["tabs"].setdefault(write.tab, [])
            start = self._start_row(write.range_spec) - 1
            for offset, values in enumerate(write.values):
                index = start + offset
                while len(rows) <= index:
                    rows.append([])
                rows[index] = list(values)
        return {"totalUpdatedRows": len(writes)}


class FakeTokenClient:
    """Token client returning queued responses and recording revocations."""

    def __init__(self, responses: Optional[List[Any]] = None) -> None:
        self.responses: List[Any] = list(responses or [])
        self.prompts: List[str] = []
        self.revoked: List[str] = []
        self.revoke_error: Optional[Exception] = None

    def request_token(self, prompt: str = "") -> TokenResponse:
        self.prompts.append(prompt)
        if not self.responses:
            return TokenResponse(access_token=f"token-{len(self.prompts)}", expires_in=3600)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def revoke(self, token: str, callback: Any = None) -> None:
        if self.revoke_error is not None:
            raise self.revoke_error
        self.revoked.append(token)


def make_auth(
    *,
    store: Any = None,
    transport: Any = None,
    token_client: Any = None,
    clock: Any = None,
    settings: Any = None,
    **overrides: Any,
):
    """Return an ``AuthService`` wired to fakes, with both libraries ready."""

    from core.google_auth import AuthService
    from core.local_store import MemoryStore
    from settings import AppSettings

    client = token_client if token_client is not None else FakeTokenClient()
    options: Dict[str, Any] = {
        "store": store if store is not None else MemoryStore(),
        "transport": transport if transport is not None else FakeTransport(),
        "token_client_factory": lambda _settings: client,
        "transport_ready": ready_future,
        "identity_ready": ready_future,
        "clock": clock if clock is not None else FakeClock(),
    }
    options.update(overrides)
    return AuthService(settings or AppSettings(client_id="client-123.apps.googleusercontent.com"), **options)
