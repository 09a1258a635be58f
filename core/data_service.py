"""Load and cache both record lists for front ends."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Any, List, Mapping, Optional

from core.errors import SheetsStoreError
from core.google_auth import AuthService
from core.record_store import RecordStore
from core.records import Doctor, Pharmacy

logger = logging.getLogger(__name__)

STATUS_IDLE = "idle"
STATUS_LOADING = "loading"
STATUS_SUCCESS = "success"
STATUS_ERROR = "error"

INIT_FAILED_MESSAGE = "Failed to initialize Google API. Please refresh the page."
NOT_AUTHENTICATED_MESSAGE = "Not authenticated. Please connect to Google Sheets."


@dataclass(frozen=True)
class DataState:
    status: str = STATUS_IDLE
    pharmacies: List[Pharmacy] = field(default_factory=list)
    doctors: List[Doctor] = field(default_factory=list)
    error: Optional[str] = None


class SheetsDataService:
    """Initialise, check the session, resolve the sheet and read both lists."""

    def __init__(self, auth: AuthService, store: Optional[RecordStore] = None) -> None:
        self._auth = auth
        self._store = store or RecordStore(auth)
        self._state = DataState()
        self._lock = threading.Lock()

    @property
    def state(self) -> DataState:
        with self._lock:
            return self._state

    @property
    def loading(self) -> bool:
        return self.state.status == STATUS_LOADING

    @property
    def error(self) -> Optional[str]:
        return self.state.error

    @property
    def pharmacies(self) -> List[Pharmacy]:
        return list(self.state.pharmacies)

    @property
    def doctors(self) -> List[Doctor]:
        return list(self.state.doctors)

    def _set_state(self, state: DataState) -> DataState:
        with self._lock:
            self._state = state
        return state

    def load(self) -> DataState:
        """Refresh both lists; failures are reported through the returned state."""

        try:
            self._auth.initialize()
        except SheetsStoreError as exc:
            logger.error("Failed to initialize Google API: %s", exc)
            return self._set_state(DataState(status=STATUS_ERROR, error=INIT_FAILED_MESSAGE))

        if not self._auth.is_authenticated():
            return self._set_state(DataState(status=STATUS_ERROR, error=NOT_AUTHENTICATED_MESSAGE))

        with self._lock:
            self._state = replace(self._state, status=STATUS_LOADING, error=None)

        try:
            pharmacies, doctors = self._store.read_both()
        except SheetsStoreError as exc:
            logger.error("Error loading data from Google Sheets: %s", exc)
            with self._lock:
                self._state = replace(self._state, status=STATUS_ERROR, error=str(exc))
                return self._state

        logger.info(
            "Loaded %s pharmacies and %s doctors from Google Sheets",
            len(pharmacies),
            len(doctors),
        )
        return self._set_state(
            DataState(status=STATUS_SUCCESS, pharmacies=pharmacies, doctors=doctors)
        )

    def reload(self) -> DataState:
        return self.load()

    def add_pharmacy(self, partial: Mapping[str, Any]) -> Pharmacy:
        pharmacy = self._store.add_pharmacy(partial)
        with self._lock:
            self._state = replace(self._state, pharmacies=[*self._state.pharmacies, pharmacy])
        return pharmacy

    def add_doctor(self, partial: Mapping[str, Any]) -> Doctor:
        doctor = self._store.add_doctor(partial)
        with self._lock:
            self._state = replace(self._state, doctors=[*self._state.doctors, doctor])
        return doctor


__all__ = [
    "DataState",
    "INIT_FAILED_MESSAGE",
    "NOT_AUTHENTICATED_MESSAGE",
    "STATUS_ERROR",
    "STATUS_IDLE",
    "STATUS_LOADING",
    "STATUS_SUCCESS",
    "SheetsDataService",
]
