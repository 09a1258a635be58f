"""Locate the spreadsheet that backs the MedRep records.

Resolution is strictly ordered:

1. the spreadsheet id cached in the local store, if it can still be opened
   with the current credential;
2. the most recently created, non-trashed spreadsheet in Drive whose name is
   the configured sheet title;
3. a freshly created spreadsheet with one worksheet per record type and a
   header row on each.

The cached id is re-verified on every call rather than trusted for the
lifetime of the process, since the spreadsheet can be deleted out of band.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from core.error_messages import extract_error_message
from core.errors import AuthRequiredError, DiscoveryError, ResourceError
from core.google_auth import AuthService
from core.local_store import SHEET_ID_KEY
from core.records import VARIANTS
from core.sheets_transport import SPREADSHEET_MIME_TYPE, RangeWrite, column_letter

logger = logging.getLogger(__name__)

SHEET_URL_TEMPLATE = "https://docs.google.com/spreadsheets/d/{sheet_id}/edit"


class SpreadsheetResolver:
    """Resolve, cache and create the backing spreadsheet."""

    def __init__(self, auth: AuthService) -> None:
        self._auth = auth
        self._settings = auth.settings
        self._store = auth.store
        self._transport = auth.transport

    # ------------------------------------------------------------------
    # Cached handle
    # ------------------------------------------------------------------
    def stored_sheet_id(self) -> Optional[str]:
        return self._store.get(SHEET_ID_KEY) or None

    def _remember(self, sheet_id: str) -> None:
        self._store.set(SHEET_ID_KEY, sheet_id)

    def forget(self) -> None:
        """Drop the cached id so the next :meth:`resolve` searches again."""

        self._store.remove(SHEET_ID_KEY)

    def sheet_url(self) -> Optional[str]:
        sheet_id = self.stored_sheet_id()
        return SHEET_URL_TEMPLATE.format(sheet_id=sheet_id) if sheet_id else None

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------
    def resolve(self) -> str:
        """Return the id of the backing spreadsheet, creating it if needed."""

        stored = self.stored_sheet_id()
        if stored:
            try:
                self.verify(stored)
            except DiscoveryError as exc:
                logger.warning("Stored sheet not usable, searching Drive instead: %s", exc)
            else:
                logger.info("Using existing sheet from local store: %s", stored)
                return stored

        existing = self._find_existing()
        if existing:
            self._remember(existing)
            logger.info("Found and using existing sheet: %s", existing)
            return existing

        logger.info("Creating new Google Sheet...")
        created = self._create()
        self._remember(created)
        return created

    def verify(self, sheet_id: str) -> None:
        """Raise :class:`DiscoveryError` unless ``sheet_id`` is reachable."""

        try:
            self._auth.ensure_authenticated()
            self._transport.get_resource_metadata(sheet_id)
        except Exception as exc:
            message = extract_error_message(exc)
            raise DiscoveryError(
                f"Sheet not found or not accessible ({sheet_id}): {message}"
            ) from exc

    def _find_existing(self) -> Optional[str]:
        self._auth.ensure_authenticated()
        try:
            files = self._transport.list_resources(
                self._settings.sheet_title,
                SPREADSHEET_MIME_TYPE,
                exclude_trashed=True,
                order_by="createdTime desc",
            )
        except Exception as exc:
            message = extract_error_message(exc)
            logger.error("Error searching for existing sheet: %s", message)
            raise ResourceError(f"Failed to search for existing sheet: {message}") from exc

        if files:
            return files[0].get("id") or None
        return None

    def _tab_titles(self) -> List[str]:
        return [variant.tab_title(self._settings) for variant in VARIANTS]

    def _create(self) -> str:
        self._auth.ensure_authenticated()
        try:
            created = self._transport.create_resource(self._settings.sheet_title, self._tab_titles())
            sheet_id = created.get("id")
            if not sheet_id:
                raise ResourceError("Failed to create sheet - no spreadsheet ID returned")
            logger.info("Created sheet with ID: %s", sheet_id)
            self._write_headers(sheet_id)
        except (ResourceError, AuthRequiredError):
            raise
        except Exception as exc:
            message = extract_error_message(exc)
            logger.error("Error creating sheet: %s", message)
            raise ResourceError(f"Failed to create sheet: {message}") from exc
        return sheet_id

    def _write_headers(self, sheet_id: str) -> None:
        writes = []
        for variant in VARIANTS:
            headers = variant.headers()
            writes.append(
                RangeWrite(
                    tab=variant.tab_title(self._settings),
                    range_spec=f"A1:{column_letter(len(headers))}1",
                    values=[headers],
                )
            )
        self._transport.batch_write_ranges(sheet_id, writes)
        logger.info("Headers written successfully")


__all__ = ["SHEET_URL_TEMPLATE", "SpreadsheetResolver"]
