"""Readiness signals for the Google client and identity libraries."""
from __future__ import annotations

import importlib
import logging
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import List, Sequence

logger = logging.getLogger(__name__)

TRANSPORT_IMPORTS: Sequence[str] = (
    "googleapiclient.discovery",
    "googleapiclient.errors",
    "google.oauth2.credentials",
    "httplib2",
)

IDENTITY_IMPORTS: Sequence[str] = (
    "google_auth_oauthlib.flow",
    "google.auth.transport.requests",
    "oauthlib.oauth2",
)

TRANSPORT_LIBRARY = "Google API client"
IDENTITY_LIBRARY = "Google Identity Services"

_missing_imports: List[str] = []


def _try_import(module_name: str) -> bool:
    try:
        importlib.import_module(module_name)
    except (ImportError, FileNotFoundError) as exc:  # pragma: no cover - depends on environment
        logger.debug("[Deps] import error for %s: %s", module_name, exc, exc_info=True)
        return False
    return True


def _check_imports(module_names: Sequence[str]) -> List[str]:
    missing: List[str] = []
    for module_name in module_names:
        if not _try_import(module_name):
            missing.append(module_name)
    return missing


def library_ready(name: str, module_names: Sequence[str]) -> "Future[None]":
    """Return a future that resolves once ``module_names`` are importable."""

    global _missing_imports
    future: "Future[None]" = Future()
    missing = _check_imports(module_names)
    if missing:
        _missing_imports = sorted(set(_missing_imports) | set(missing))
        logger.warning("[Deps] %s modules missing: %s", name, ", ".join(missing))
        future.set_exception(ImportError(f"{name} is unavailable: {', '.join(missing)}"))
    else:
        logger.info("[Deps] %s ready.", name)
        future.set_result(None)
    return future


def transport_ready() -> "Future[None]":
    return library_ready(TRANSPORT_LIBRARY, TRANSPORT_IMPORTS)


def identity_ready() -> "Future[None]":
    return library_ready(IDENTITY_LIBRARY, IDENTITY_IMPORTS)


def wait_for_library(name: str, ready: "Future[None]", timeout: float) -> None:
    """Block until ``ready`` resolves, raising ``TimeoutError`` after ``timeout`` seconds."""

    try:
        ready.result(timeout=timeout)
    except FutureTimeoutError as exc:
        raise TimeoutError(f"Timeout waiting for {name} to load") from exc


def missing_dependencies() -> Sequence[str]:
    """Return the modules reported missing by previous readiness checks."""

    return tuple(_missing_imports)


__all__ = [
    "IDENTITY_IMPORTS",
    "IDENTITY_LIBRARY",
    "TRANSPORT_IMPORTS",
    "TRANSPORT_LIBRARY",
    "identity_ready",
    "library_ready",
    "missing_dependencies",
    "transport_ready",
    "wait_for_library",
]
