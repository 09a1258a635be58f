from __future__ import annotations

import sys
from concurrent.futures import Future
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.data_service import (
    INIT_FAILED_MESSAGE,
    NOT_AUTHENTICATED_MESSAGE,
    STATUS_ERROR,
    STATUS_IDLE,
    STATUS_SUCCESS,
    SheetsDataService,
)
from core.local_store import ACCESS_TOKEN_KEY, EXPIRES_AT_KEY, MemoryStore
from core.records import DOCTOR, PHARMACY
from fakes import FakeClock, FakeTransport, http_error, make_auth


def _signed_in_service(transport: FakeTransport) -> SheetsDataService:
    clock = FakeClock()
    store = MemoryStore({ACCESS_TOKEN_KEY: "token-abc", EXPIRES_AT_KEY: str(clock() + 60_000)})
    return SheetsDataService(make_auth(store=store, transport=transport, clock=clock))


def _failed_import() -> "Future[None]":
    future: "Future[None]" = Future()
    future.set_exception(ImportError("googleapiclient is unavailable"))
    return future


def test_initial_state_is_idle() -> None:
    service = SheetsDataService(make_auth())

    assert service.state.status == STATUS_IDLE
    assert service.pharmacies == []
    assert not service.loading


def test_load_reports_initialization_failure() -> None:
    service = SheetsDataService(make_auth(transport_ready=_failed_import))

    state = service.load()

    assert state.status == STATUS_ERROR
    assert state.error == INIT_FAILED_MESSAGE


def test_load_requires_sign_in() -> None:
    transport = FakeTransport()
    service = SheetsDataService(make_auth(transport=transport))

    state = service.load()

    assert state.error == NOT_AUTHENTICATED_MESSAGE
    assert transport.calls == []


def test_load_reads_both_lists() -> None:
    transport = FakeTransport()
    transport.add_spreadsheet(
        "representante_medico__app",
        {
            "farmacias": [PHARMACY.headers(), ["p1", "2024-01-01T00:00:00.000Z"]],
            "medicos": [DOCTOR.headers(), ["d1", "2024-01-01T00:00:00.000Z"], ["d2", "2024-01-02T00:00:00.000Z"]],
        },
    )
    service = _signed_in_service(transport)

    state = service.load()

    assert state.status == STATUS_SUCCESS
    assert [pharmacy.id for pharmacy in service.pharmacies] == ["p1"]
    assert [doctor.id for doctor in service.doctors] == ["d1", "d2"]
    assert service.error is None


def test_failed_reload_keeps_previous_lists() -> None:
    transport = FakeTransport()
    service = _signed_in_service(transport)
    service.add_doctor({"ciudad": "Oaxaca"})
    assert service.load().status == STATUS_SUCCESS

    transport.failures["read_range"] = http_error(503, "The service is currently unavailable.")
    state = service.reload()

    assert state.status == STATUS_ERROR
    assert state.error == "Failed to read pharmacies: The service is currently unavailable."
    assert [doctor.ciudad for doctor in state.doctors] == ["Oaxaca"]


def test_add_pharmacy_updates_cached_list() -> None:
    transport = FakeTransport()
    service = _signed_in_service(transport)
    service.load()

    pharmacy = service.add_pharmacy({"nombreCuenta": "Farmacia Norte"})

    assert service.pharmacies == [pharmacy]
    assert pharmacy.nombre_cuenta == "Farmacia Norte"
