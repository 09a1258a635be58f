"""Turn the assorted error shapes returned by Google clients into text."""
from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, Optional

from googleapiclient.errors import HttpError

_MISSING = object()


def _field(source: Any, name: str) -> Any:
    if source is None:
        return _MISSING
    try:
        if isinstance(source, Mapping):
            return source.get(name, _MISSING)
        return getattr(source, name, _MISSING)
    except Exception:
        return _MISSING


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _decode_content(content: Any) -> Any:
    if isinstance(content, bytes):
        try:
            content = content.decode("utf-8")
        except UnicodeDecodeError:
            return None
    if not isinstance(content, str) or not content.strip():
        return None
    try:
        return json.loads(content)
    except ValueError:
        return None


def _error_envelope_message(payload: Any) -> Optional[str]:
    """Return ``payload["error"]["message"]`` for a Google API error body."""

    envelope = _field(payload, "error")
    if envelope is _MISSING:
        return None
    return _text(_field(envelope, "message"))


def _remote_message(error: Any) -> Optional[str]:
    if isinstance(error, HttpError):
        message = _error_envelope_message(_decode_content(getattr(error, "content", None)))
        if message:
            return message
    result = _field(error, "result")
    if result is not _MISSING:
        message = _error_envelope_message(result)
        if message:
            return message
    return _error_envelope_message(error)


def _generic_message(error: Any) -> Optional[str]:
    message = _text(_field(error, "message"))
    if message:
        return message
    if isinstance(error, BaseException) and error.args:
        return _text(error.args[0])
    return None


def _status_message(error: Any) -> Optional[str]:
    for name in ("statusText", "reason"):
        message = _text(_field(error, name))
        if message:
            return message
    return None


def _fallback_message(error: Any) -> str:
    try:
        text = str(error)
    except Exception:
        text = ""
    if text.strip():
        return text
    try:
        return type(error).__name__
    except Exception:  # pragma: no cover - exotic metaclass
        return "Unknown error"


def extract_error_message(error: Any) -> str:
    """Return a descriptive message for ``error``; never raises.

    Precedence: the nested ``error.message`` of a Google API error body, a
    ``message`` field, a ``statusText``/``reason`` field, and finally the
    string conversion of the value itself.
    """

    for extractor in (_remote_message, _generic_message, _status_message):
        try:
            message = extractor(error)
        except Exception:
            message = None
        if message:
            return message
    return _fallback_message(error)


__all__ = ["extract_error_message"]
