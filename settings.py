"""Application configuration helpers for MedRep."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from core import app_paths


logger = logging.getLogger(__name__)


SETTINGS_FILENAME = "settings.json"

CLIENT_ID_ENV_VAR = "MEDREP_GOOGLE_CLIENT_ID"
CLIENT_SECRET_ENV_VAR = "MEDREP_GOOGLE_CLIENT_SECRET"
SCOPES_ENV_VAR = "MEDREP_GOOGLE_SCOPES"

DEFAULT_SCOPES = (
    "https://www.googleapis.com/auth/spreadsheets "
    "https://www.googleapis.com/auth/drive.file"
)
DEFAULT_SHEET_TITLE = "representante_medico__app"
DEFAULT_PHARMACIES_TAB = "farmacias"
DEFAULT_DOCTORS_TAB = "medicos"
DEFAULT_LIBRARY_WAIT_TIMEOUT_MS = 10_000
DEFAULT_LIBRARY_POLL_INTERVAL_MS = 100
MIN_LIBRARY_WAIT_TIMEOUT_MS = 100


@dataclass
class AppSettings:
    client_id: str = ""
    client_secret: str = ""
    scopes: str = DEFAULT_SCOPES
    sheet_title: str = DEFAULT_SHEET_TITLE
    pharmacies_tab: str = DEFAULT_PHARMACIES_TAB
    doctors_tab: str = DEFAULT_DOCTORS_TAB
    library_wait_timeout_ms: int = DEFAULT_LIBRARY_WAIT_TIMEOUT_MS
    library_poll_interval_ms: int = DEFAULT_LIBRARY_POLL_INTERVAL_MS
    redirect_port: int = 0
    extra: Dict[str, object] = field(default_factory=dict)

    @property
    def scope_list(self) -> List[str]:
        return [scope for scope in self.scopes.replace(",", " ").split() if scope]

    @property
    def library_wait_timeout(self) -> float:
        """Readiness wait budget in seconds."""

        return self.library_wait_timeout_ms / 1000.0

    def client_config(self) -> Dict[str, Dict[str, object]]:
        """Return the OAuth client configuration for an installed application."""

        installed: Dict[str, object] = {
            "client_id": self.client_id,
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": "https://oauth2.googleapis.com/token",
            "redirect_uris": ["http://localhost"],
        }
        if self.client_secret:
            installed["client_secret"] = self.client_secret
        return {"installed": installed}

    def to_json(self) -> Dict[str, object]:
        payload: Dict[str, object] = dict(self.extra)
        payload.update(
            {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "scopes": self.scopes,
                "sheet_title": self.sheet_title,
                "pharmacies_tab": self.pharmacies_tab,
                "doctors_tab": self.doctors_tab,
                "library_wait_timeout_ms": self.library_wait_timeout_ms,
                "library_poll_interval_ms": self.library_poll_interval_ms,
                "redirect_port": self.redirect_port,
            }
        )
        return payload


def default_settings_path() -> str:
    return str(app_paths.data_path(SETTINGS_FILENAME))


def _read_settings_file(path: str) -> Dict[str, object]:
    if not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Settings file %s could not be read: %s", path, exc)
        return {}
    if not isinstance(data, Mapping):
        return {}
    return dict(data)


def _extract_text(data: Mapping[str, object], key: str, default: str) -> str:
    value = data.get(key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _extract_int(data: Mapping[str, object], key: str, default: int, *, minimum: int) -> int:
    try:
        return max(minimum, int(data.get(key, default)))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default


def _apply_environment(data: Dict[str, object], environ: Mapping[str, str]) -> Dict[str, object]:
    merged = dict(data)
    for env_var, key in (
        (CLIENT_ID_ENV_VAR, "client_id"),
        (CLIENT_SECRET_ENV_VAR, "client_secret"),
        (SCOPES_ENV_VAR, "scopes"),
    ):
        value = environ.get(env_var)
        if value:
            merged[key] = value
    return merged


_KNOWN_KEYS = {
    "client_id",
    "client_secret",
    "scopes",
    "sheet_title",
    "pharmacies_tab",
    "doctors_tab",
    "library_wait_timeout_ms",
    "library_poll_interval_ms",
    "redirect_port",
}


def load_app_settings(
    path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None
) -> AppSettings:
    """Load settings from ``path`` and apply ``MEDREP_*`` environment overrides."""

    settings_path = path or default_settings_path()
    data = _apply_environment(
        _read_settings_file(settings_path),
        os.environ if environ is None else environ,
    )

    return AppSettings(
        client_id=_extract_text(data, "client_id", ""),
        client_secret=_extract_text(data, "client_secret", ""),
        scopes=_extract_text(data, "scopes", DEFAULT_SCOPES),
        sheet_title=_extract_text(data, "sheet_title", DEFAULT_SHEET_TITLE),
        pharmacies_tab=_extract_text(data, "pharmacies_tab", DEFAULT_PHARMACIES_TAB),
        doctors_tab=_extract_text(data, "doctors_tab", DEFAULT_DOCTORS_TAB),
        library_wait_timeout_ms=_extract_int(
            data,
            "library_wait_timeout_ms",
            DEFAULT_LIBRARY_WAIT_TIMEOUT_MS,
            minimum=MIN_LIBRARY_WAIT_TIMEOUT_MS,
        ),
        library_poll_interval_ms=_extract_int(
            data, "library_poll_interval_ms", DEFAULT_LIBRARY_POLL_INTERVAL_MS, minimum=1
        ),
        redirect_port=_extract_int(data, "redirect_port", 0, minimum=0),
        extra={key: value for key, value in data.items() if key not in _KNOWN_KEYS},
    )


def save_app_settings(settings: AppSettings, path: Optional[str] = None) -> None:
    settings_path = path or default_settings_path()
    directory = os.path.dirname(settings_path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(settings_path, "w", encoding="utf-8") as handle:
        json.dump(settings.to_json(), handle, indent=2)


__all__ = [
    "AppSettings",
    "CLIENT_ID_ENV_VAR",
    "CLIENT_SECRET_ENV_VAR",
    "DEFAULT_DOCTORS_TAB",
    "DEFAULT_LIBRARY_WAIT_TIMEOUT_MS",
    "DEFAULT_PHARMACIES_TAB",
    "DEFAULT_SCOPES",
    "DEFAULT_SHEET_TITLE",
    "SCOPES_ENV_VAR",
    "load_app_settings",
    "save_app_settings",
]
