"""Locations of the MedRep per-user data and log directories."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator

APP_DIR_ENV_VAR = "MEDREP_APP_DIR"
APP_FOLDER_NAME = "MedRep"


def _candidate_directories() -> Iterator[Path]:
    override = os.environ.get(APP_DIR_ENV_VAR)
    if override:
        yield Path(override).expanduser()
    for env_var in ("LOCALAPPDATA", "APPDATA"):
        value = os.environ.get(env_var)
        if value:
            yield Path(value).expanduser() / APP_FOLDER_NAME
    yield Path.home() / ".medrep"


APP_DIR: Path = next(_candidate_directories()).resolve()
LOG_DIR: Path = APP_DIR / "logs"


def ensure_directory(path: Path) -> Path:
    """Create ``path`` (and parents) if needed and return it."""

    path.mkdir(parents=True, exist_ok=True)
    return path


def ensure_app_structure() -> None:
    for directory in (APP_DIR, LOG_DIR):
        ensure_directory(directory)


def data_path(*parts: str) -> Path:
    """Return ``APP_DIR / parts``; the containing directory is created."""

    ensure_app_structure()
    target = APP_DIR.joinpath(*parts)
    ensure_directory(target.parent)
    return target


def log_path(filename: str) -> Path:
    ensure_app_structure()
    return LOG_DIR / filename


__all__ = [
    "APP_DIR",
    "APP_DIR_ENV_VAR",
    "LOG_DIR",
    "data_path",
    "ensure_app_structure",
    "ensure_directory",
    "log_path",
]
