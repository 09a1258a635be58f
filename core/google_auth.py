"""OAuth session management for the Google Sheets record store.

:class:`AuthService` owns the bearer token used for every Drive and Sheets
call.  The token is obtained through the installed-app consent flow, cached
in the local store together with its expiry instant, and re-requested through
the same consent-aware flow once it expires; there is no refresh-token
exchange.

Bootstrapping the Google client and identity libraries happens once per
process.  Concurrent callers of :meth:`AuthService.initialize` share a single
in-flight attempt; a failed attempt is forgotten so the next call retries.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from core import deps_bootstrap
from core.error_messages import extract_error_message
from core.errors import AuthInitError, AuthRequiredError, SheetsStoreError, SignInError
from core.identity import PROMPT_CONSENT, PROMPT_SILENT_IF_GRANTED, InstalledAppTokenClient
from core.local_store import (
    ACCESS_TOKEN_KEY,
    ALL_KEYS,
    EXPIRES_AT_KEY,
    JsonFileStore,
)
from core.sheets_transport import SheetsTransport
from settings import CLIENT_ID_ENV_VAR, AppSettings

logger = logging.getLogger(__name__)

Clock = Callable[[], int]
ReadinessSignal = Callable[[], "Future[None]"]
TokenClientFactory = Callable[[AppSettings], Any]


class AuthState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class Session:
    access_token: str
    expires_at_ms: int

    def is_valid(self, now_ms: int) -> bool:
        return bool(self.access_token) and now_ms < self.expires_at_ms


def epoch_millis() -> int:
    return int(time.time() * 1000)


def build_token_client(settings: AppSettings) -> InstalledAppTokenClient:
    """Construct the token client bound to the configured client id and scopes."""

    if not settings.client_id:
        raise AuthInitError(
            f"Google OAuth client ID is not configured. Set {CLIENT_ID_ENV_VAR} or "
            "add client_id to settings.json."
        )
    return InstalledAppTokenClient(
        settings.client_config(),
        settings.scope_list,
        redirect_port=settings.redirect_port,
    )


class AuthService:
    """Credential manager: bootstrap, sign-in, sign-out and token expiry."""

    def __init__(
        self,
        settings: AppSettings,
        *,
        store: Any = None,
        transport: Optional[SheetsTransport] = None,
        token_client_factory: Optional[TokenClientFactory] = None,
        transport_ready: Optional[ReadinessSignal] = None,
        identity_ready: Optional[ReadinessSignal] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._settings = settings
        self._store = store if store is not None else JsonFileStore()
        self._transport = transport if transport is not None else SheetsTransport()
        self._token_client_factory = token_client_factory or build_token_client
        self._transport_ready = transport_ready or deps_bootstrap.transport_ready
        self._identity_ready = identity_ready or deps_bootstrap.identity_ready
        self._clock = clock or epoch_millis
        self._token_client: Any = None
        self._state = AuthState.UNINITIALIZED
        self._last_error: Optional[AuthInitError] = None
        self._pending: Optional["Future[None]"] = None
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def settings(self) -> AppSettings:
        return self._settings

    @property
    def store(self) -> Any:
        return self._store

    @property
    def transport(self) -> SheetsTransport:
        return self._transport

    @property
    def state(self) -> AuthState:
        with self._lock:
            if self._state is AuthState.UNINITIALIZED and self._last_error is not None:
                return AuthState.ERROR
            return self._state

    def now(self) -> int:
        return self._clock()

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------
    def initialize(self) -> None:
        """Load the Google API clients once; safe to call from many threads."""

        with self._lock:
            if self._state is AuthState.READY:
                return
            pending = self._pending
            owner = pending is None
            if owner:
                pending = Future()
                self._pending = pending
                self._state = AuthState.INITIALIZING

        assert pending is not None
        if owner:
            self._bootstrap(pending)
        pending.result()

    def _bootstrap(self, pending: "Future[None]") -> None:
        try:
            with ThreadPoolExecutor(max_workers=2, thread_name_prefix="google-bootstrap") as executor:
                transport_job = executor.submit(self._bootstrap_transport)
                identity_job = executor.submit(self._bootstrap_identity)
                transport_job.result()
                token_client = identity_job.result()
        except Exception as exc:
            message = extract_error_message(exc)
            logger.error("Error during Google API initialization: %s", message)
            error = exc if isinstance(exc, AuthInitError) else AuthInitError(message)
            if error is not exc:
                error.__cause__ = exc
            with self._lock:
                self._state = AuthState.UNINITIALIZED
                self._last_error = error
                self._pending = None
            pending.set_exception(error)
            return

        with self._lock:
            self._token_client = token_client
            self._state = AuthState.READY
            self._last_error = None
            self._pending = None
        pending.set_result(None)

    def _bootstrap_transport(self) -> None:
        deps_bootstrap.wait_for_library(
            deps_bootstrap.TRANSPORT_LIBRARY,
            self._transport_ready(),
            self._settings.library_wait_timeout,
        )
        self._transport.load()

    def _bootstrap_identity(self) -> Any:
        deps_bootstrap.wait_for_library(
            deps_bootstrap.IDENTITY_LIBRARY,
            self._identity_ready(),
            self._settings.library_wait_timeout,
        )
        token_client = self._token_client_factory(self._settings)
        logger.info("Google Identity Services initialized")
        return token_client

    def _require_token_client(self) -> Any:
        with self._lock:
            token_client = self._token_client
        if token_client is None:
            raise AuthInitError("Google Auth not initialized")
        return token_client

    # ------------------------------------------------------------------
    # Session persistence
    # ------------------------------------------------------------------
    def current_session(self) -> Optional[Session]:
        token = self._store.get(ACCESS_TOKEN_KEY)
        expires_at = self._store.get(EXPIRES_AT_KEY)
        if not token or not expires_at:
            return None
        try:
            expires_at_ms = int(expires_at)
        except ValueError:
            logger.warning("Stored token expiry %r is not an integer", expires_at)
            return None
        return Session(access_token=token, expires_at_ms=expires_at_ms)

    def _store_session(self, session: Session) -> None:
        self._store.set(ACCESS_TOKEN_KEY, session.access_token)
        self._store.set(EXPIRES_AT_KEY, str(session.expires_at_ms))

    def is_authenticated(self) -> bool:
        """Return ``True`` while the persisted session has not expired."""

        session = self.current_session()
        return session is not None and session.is_valid(self._clock())

    def restore_session(self) -> bool:
        """Attach a still-valid cached session to the transport without prompting."""

        session = self.current_session()
        if session is None or not session.is_valid(self._clock()):
            return False
        self._transport.set_token(session.access_token)
        return True

    def clear_cached_session(self) -> None:
        """Forget the cached token, its expiry and the spreadsheet id."""

        self._transport.set_token(None)
        self._store.clear(ALL_KEYS)

    # ------------------------------------------------------------------
    # Sign in / out
    # ------------------------------------------------------------------
    def sign_in(self, *, force_consent: bool = False) -> Session:
        """Reuse a valid cached session or run the consent flow.

        ``force_consent`` skips the cached session and always shows the
        consent screen, e.g. to switch accounts or grant a changed scope.
        """

        token_client = self._require_token_client()

        cached = None if force_consent else self.current_session()
        if cached is not None and cached.is_valid(self._clock()):
            self._transport.set_token(cached.access_token)
            return cached

        try:
            response = token_client.request_token(
                PROMPT_CONSENT if force_consent else PROMPT_SILENT_IF_GRANTED
            )
        except Exception as exc:
            message = extract_error_message(exc)
            logger.error("Error during sign in: %s", message)
            raise SignInError(message) from exc

        if response.error or not response.access_token:
            error = response.error or "invalid_token_response"
            logger.error("Error during sign in: %s", error)
            if response.error_description:
                raise SignInError(f"{error}: {response.error_description}")
            raise SignInError(error)

        session = Session(
            access_token=response.access_token,
            expires_at_ms=self._clock() + int(response.expires_in) * 1000,
        )
        self._store_session(session)
        self._transport.set_token(session.access_token)
        logger.info("User signed in successfully")
        return session

    def sign_out(self) -> None:
        """Revoke the attached token and clear the session and spreadsheet id."""

        token = self._transport.get_token()
        try:
            if token:
                with self._lock:
                    token_client = self._token_client
                if token_client is not None:
                    token_client.revoke(token)
        except Exception as exc:
            message = extract_error_message(exc)
            logger.error("Error signing out: %s", message)
            raise SheetsStoreError(f"Failed to sign out: {message}") from exc
        finally:
            self._transport.set_token(None)
            self._store.clear(ALL_KEYS)
        logger.info("User signed out successfully")

    # ------------------------------------------------------------------
    # Token access
    # ------------------------------------------------------------------
    def get_valid_token(self) -> Optional[str]:
        """Return an unexpired token, re-running sign-in when it has expired."""

        session = self.current_session()
        if session is None:
            return None
        if session.is_valid(self._clock()):
            return session.access_token

        logger.info("Token expired, requesting new token...")
        try:
            refreshed = self.sign_in()
        except SheetsStoreError as exc:
            logger.error("Error refreshing token: %s", exc)
            return None
        return refreshed.access_token

    def ensure_authenticated(self) -> str:
        """Attach a valid token to the transport or raise :class:`AuthRequiredError`."""

        token = self.get_valid_token()
        if not token:
            raise AuthRequiredError()
        self._transport.set_token(token)
        return token


__all__ = [
    "AuthService",
    "AuthState",
    "Session",
    "build_token_client",
    "epoch_millis",
]
