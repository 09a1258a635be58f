"""Read and append pharmacy and doctor records on the backing spreadsheet."""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, List, Mapping, Optional, Tuple

from core.error_messages import extract_error_message
from core.errors import AuthRequiredError, ResourceError, StoreIOError
from core.google_auth import AuthService
from core.records import DOCTOR, PHARMACY, Doctor, EntityVariant, Pharmacy, generate_id, iso_timestamp
from core.sheet_resolver import SpreadsheetResolver

logger = logging.getLogger(__name__)

# Rows below the header, first 26 columns.
READ_RANGE = "A2:Z"
APPEND_RANGE = "A:Z"


class RecordStore:
    """Typed bulk read and append over the two record worksheets.

    Appends are not serialised against each other and no uniqueness check is
    made against existing ids; callers that need ordering between concurrent
    writes must coordinate themselves.
    """

    def __init__(
        self,
        auth: AuthService,
        resolver: Optional[SpreadsheetResolver] = None,
        *,
        id_factory: Optional[Callable[[], str]] = None,
        timestamp_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        self._auth = auth
        self._resolver = resolver or SpreadsheetResolver(auth)
        self._transport = auth.transport
        self._id_factory = id_factory or generate_id
        self._timestamp_factory = timestamp_factory or iso_timestamp

    @property
    def resolver(self) -> SpreadsheetResolver:
        return self._resolver

    def _prepare(self) -> str:
        sheet_id = self._resolver.resolve()
        self._auth.ensure_authenticated()
        return sheet_id

    def read_all(self, variant: EntityVariant) -> List[Any]:
        """Return every record of ``variant`` in worksheet order."""

        try:
            sheet_id = self._prepare()
            rows = self._transport.read_range(
                sheet_id, variant.tab_title(self._auth.settings), READ_RANGE
            )
        except (AuthRequiredError, ResourceError):
            raise
        except Exception as exc:
            message = extract_error_message(exc)
            logger.error("Error reading %s: %s", variant.plural, message)
            raise StoreIOError(f"Failed to read {variant.plural}: {message}") from exc
        return [variant.row_to_entity(row) for row in rows]

    def append(self, variant: EntityVariant, partial: Mapping[str, Any]) -> Any:
        """Append a new ``variant`` record built from ``partial`` and return it."""

        entity = variant.build(
            partial,
            record_id=self._id_factory(),
            created_at=self._timestamp_factory(),
        )
        row = variant.entity_to_row(entity)
        try:
            sheet_id = self._prepare()
            self._transport.append_row(
                sheet_id, variant.tab_title(self._auth.settings), APPEND_RANGE, row
            )
        except (AuthRequiredError, ResourceError):
            raise
        except Exception as exc:
            message = extract_error_message(exc)
            logger.error("Error writing %s: %s", variant.singular, message)
            raise StoreIOError(f"Failed to write {variant.singular}: {message}") from exc
        logger.info("%s %s written successfully", variant.singular.capitalize(), entity.id)
        return entity

    # ------------------------------------------------------------------
    # Typed conveniences
    # ------------------------------------------------------------------
    def read_pharmacies(self) -> List[Pharmacy]:
        return self.read_all(PHARMACY)

    def read_doctors(self) -> List[Doctor]:
        return self.read_all(DOCTOR)

    def add_pharmacy(self, partial: Mapping[str, Any]) -> Pharmacy:
        return self.append(PHARMACY, partial)

    def add_doctor(self, partial: Mapping[str, Any]) -> Doctor:
        return self.append(DOCTOR, partial)

    def read_both(self) -> Tuple[List[Pharmacy], List[Doctor]]:
        """Read both worksheets concurrently; either failure fails the pair."""

        # resolve before fanning out so a cold cache creates one spreadsheet
        self._resolver.resolve()
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="sheet-read") as executor:
            pharmacies = executor.submit(self.read_pharmacies)
            doctors = executor.submit(self.read_doctors)
            return pharmacies.result(), doctors.result()


__all__ = ["APPEND_RANGE", "READ_RANGE", "RecordStore"]
