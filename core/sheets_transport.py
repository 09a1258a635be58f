"""Google Drive and Sheets transport used by the MedRep record store.

This module centralises every direct interaction with the Google APIs.  It
exposes a small capability surface that the resolver and the record store can
rely on without knowing about discovery documents or request objects:

* ``list_resources`` / ``create_resource`` / ``get_resource_metadata`` for
  locating the backing spreadsheet through Drive v3 and Sheets v4.
* ``read_range`` / ``append_row`` / ``batch_write_ranges`` for values access.

The transport carries no retry logic and does not translate errors; the
layers above normalise failures into the exceptions of :mod:`core.errors`.
Worksheet titles are always quoted according to A1 notation rules so that
"Unable to parse range" errors cannot occur for titles containing spaces or
apostrophes.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, MutableSequence, Optional, Sequence

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

logger = logging.getLogger(__name__)

SPREADSHEET_MIME_TYPE = "application/vnd.google-apps.spreadsheet"
DEFAULT_ORDER_BY = "createdTime desc"
RAW_INPUT = "RAW"


@dataclass(slots=True)
class RangeWrite:
    """A block of values written to ``range_spec`` on worksheet ``tab``."""

    tab: str
    range_spec: str
    values: List[List[Any]]


class TransportNotLoadedError(RuntimeError):
    """Raised when a remote call is attempted before :meth:`SheetsTransport.load`."""


def quote_worksheet_title(title: str) -> str:
    """Return a worksheet title quoted according to A1 notation rules."""

    safe = (title or "").strip()
    if len(safe) >= 2 and safe[0] == safe[-1] and safe[0] in {"'", '"'}:
        safe = safe[1:-1].replace("''", "'")
    if not safe:
        raise ValueError("Worksheet title must not be empty")
    return "'" + safe.replace("'", "''") + "'"


def column_letter(index: int) -> str:
    """Return the spreadsheet column letter for a 1-indexed column index."""

    if index < 1:
        raise ValueError("Column index must be >= 1")
    letters: MutableSequence[str] = []
    while index:
        index, remainder = divmod(index - 1, 26)
        letters.append(chr(65 + remainder))
    return "".join(reversed(letters))


def a1_range(title: str, range_spec: str) -> str:
    """Return ``range_spec`` qualified with the quoted worksheet ``title``."""

    return f"{quote_worksheet_title(title)}!{range_spec}"


def _escape_query_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


ServiceBuilder = Callable[..., Any]


class SheetsTransport:
    """Thin wrapper around the Drive v3 and Sheets v4 discovery clients.

    A single :class:`google.oauth2.credentials.Credentials` instance is shared
    by both services; attaching or detaching a token only swaps its
    ``token`` attribute so the services never need to be rebuilt.
    """

    def __init__(
        self,
        *,
        sheets_service: Any = None,
        drive_service: Any = None,
        builder: Optional[ServiceBuilder] = None,
    ) -> None:
        self._credentials = Credentials(token=None)
        self._sheets = sheets_service
        self._drive = drive_service
        self._builder = builder or build
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Sub-client management
    # ------------------------------------------------------------------
    @property
    def loaded(self) -> bool:
        return self._sheets is not None and self._drive is not None

    def load(self) -> None:
        """Build the Sheets v4 and Drive v3 sub-clients if they are missing."""

        with self._lock:
            if self._sheets is None:
                self._sheets = self._builder(
                    "sheets", "v4", credentials=self._credentials, cache_discovery=False
                )
            if self._drive is None:
                self._drive = self._builder(
                    "drive", "v3", credentials=self._credentials, cache_discovery=False
                )
        logger.info("Google API client initialized with Sheets API v4 and Drive API v3")

    def set_token(self, token: Optional[str]) -> None:
        """Attach ``token`` to outgoing requests, or detach it with ``None``."""

        self._credentials.token = token

    def get_token(self) -> Optional[str]:
        return self._credentials.token

    def _sheets_service(self) -> Any:
        if self._sheets is None:
            raise TransportNotLoadedError("Sheets API client has not been loaded")
        return self._sheets

    def _drive_service(self) -> Any:
        if self._drive is None:
            raise TransportNotLoadedError("Drive API client has not been loaded")
        return self._drive

    # ------------------------------------------------------------------
    # Resource discovery
    # ------------------------------------------------------------------
    def list_resources(
        self,
        name: str,
        mime_type: str = SPREADSHEET_MIME_TYPE,
        *,
        exclude_trashed: bool = True,
        order_by: str = DEFAULT_ORDER_BY,
    ) -> List[Dict[str, str]]:
        """Return ``{"id", "name"}`` entries for Drive files matching ``name``."""

        clauses = [f"name = '{_escape_query_value(name)}'", f"mimeType = '{mime_type}'"]
        if exclude_trashed:
            clauses.append("trashed = false")
        response = (
            self._drive_service()
            .files()
            .list(
                q=" and ".join(clauses),
                spaces="drive",
                fields="files(id, name)",
                orderBy=order_by,
            )
            .execute()
        )
        files = response.get("files", []) if isinstance(response, Mapping) else []
        return [
            {"id": str(entry.get("id", "")), "name": str(entry.get("name", ""))}
            for entry in files
            if isinstance(entry, Mapping) and entry.get("id")
        ]

    def create_resource(self, title: str, tab_titles: Sequence[str]) -> Dict[str, Optional[str]]:
        """Create a spreadsheet named ``title`` with one worksheet per tab title."""

        body = {
            "properties": {"title": title},
            "sheets": [{"properties": {"title": tab}} for tab in tab_titles],
        }
        response = (
            self._sheets_service()
            .spreadsheets()
            .create(body=body, fields="spreadsheetId")
            .execute()
        )
        spreadsheet_id = response.get("spreadsheetId") if isinstance(response, Mapping) else None
        return {"id": spreadsheet_id or None}

    def get_resource_metadata(self, resource_id: str) -> Dict[str, Any]:
        """Return spreadsheet metadata; raises when it is missing or forbidden."""

        response = (
            self._sheets_service()
            .spreadsheets()
            .get(
                spreadsheetId=resource_id,
                includeGridData=False,
                fields="spreadsheetId,properties.title",
            )
            .execute()
        )
        return dict(response) if isinstance(response, Mapping) else {}

    # ------------------------------------------------------------------
    # Values access
    # ------------------------------------------------------------------
    def read_range(self, resource_id: str, tab: str, range_spec: str) -> List[List[str]]:
        """Return the cell values of ``range_spec`` as rows of strings."""

        response = (
            self._sheets_service()
            .spreadsheets()
            .values()
            .get(
                spreadsheetId=resource_id,
                range=a1_range(tab, range_spec),
                majorDimension="ROWS",
            )
            .execute()
        )
        values = response.get("values", []) if isinstance(response, Mapping) else []
        return [["" if cell is None else str(cell) for cell in row] for row in values]

    def append_row(
        self,
        resource_id: str,
        tab: str,
        range_spec: str,
        row: Sequence[Any],
        *,
        value_input_option: str = RAW_INPUT,
    ) -> Dict[str, Any]:
        """Append ``row`` after the last populated row of ``range_spec``."""

        response = (
            self._sheets_service()
            .spreadsheets()
            .values()
            .append(
                spreadsheetId=resource_id,
                range=a1_range(tab, range_spec),
                valueInputOption=value_input_option,
                insertDataOption="INSERT_ROWS",
                body={"values": [list(row)]},
            )
            .execute()
        )
        return dict(response) if isinstance(response, Mapping) else {}

    def batch_write_ranges(
        self,
        resource_id: str,
        writes: Sequence[RangeWrite],
        *,
        value_input_option: str = RAW_INPUT,
    ) -> Dict[str, Any]:
        """Write several ranges in a single ``values.batchUpdate`` request."""

        if not writes:
            return {}
        body = {
            "valueInputOption": value_input_option,
            "data": [
                {
                    "range": a1_range(write.tab, write.range_spec),
                    "values": [list(row) for row in write.values],
                    "majorDimension": "ROWS",
                }
                for write in writes
            ],
        }
        response = (
            self._sheets_service()
            .spreadsheets()
            .values()
            .batchUpdate(spreadsheetId=resource_id, body=body)
            .execute()
        )
        return dict(response) if isinstance(response, Mapping) else {}


__all__ = [
    "DEFAULT_ORDER_BY",
    "RAW_INPUT",
    "RangeWrite",
    "SPREADSHEET_MIME_TYPE",
    "SheetsTransport",
    "TransportNotLoadedError",
    "a1_range",
    "column_letter",
    "quote_worksheet_title",
]
