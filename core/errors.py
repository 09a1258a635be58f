"""Exception hierarchy shared by the authentication and sheet layers.

Every failure that leaves the session/discovery layer is one of the classes
below and carries a plain, already normalised message.  Raw transport errors
are chained with ``raise ... from exc`` so that the original traceback is
still available in the log file.
"""

from __future__ import annotations


class SheetsStoreError(RuntimeError):
    """Base error raised by the MedRep Google Sheets integration."""


class DiscoveryError(SheetsStoreError):
    """Raised when a cached spreadsheet id cannot be verified.

    The resolver handles this internally by falling back to search and
    creation; it never reaches callers.
    """


class AuthInitError(SheetsStoreError):
    """Raised when the Google client or identity libraries fail to bootstrap."""


class AuthRequiredError(SheetsStoreError):
    """Raised when no valid access token is available and sign-in is needed."""

    def __init__(self, message: str = "Not authenticated") -> None:
        super().__init__(message)


class SignInError(SheetsStoreError):
    """Raised when the OAuth provider reports an error for a token request."""


class ResourceError(SheetsStoreError):
    """Raised when the backing spreadsheet can be neither found nor created."""


class StoreIOError(SheetsStoreError):
    """Raised when reading or appending rows is rejected by the remote API."""


__all__ = [
    "AuthInitError",
    "AuthRequiredError",
    "DiscoveryError",
    "ResourceError",
    "SheetsStoreError",
    "SignInError",
    "StoreIOError",
]
