"""OAuth token requests and revocation for the installed-app consent flow."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Sequence
from urllib.parse import urlencode

from google.auth.transport.requests import Request
from google_auth_oauthlib.flow import InstalledAppFlow
from oauthlib.oauth2.rfc6749.errors import OAuth2Error

logger = logging.getLogger(__name__)

REVOKE_URI = "https://oauth2.googleapis.com/revoke"
REVOKE_TIMEOUT_SECONDS = 10
DEFAULT_EXPIRES_IN = 3600

# Prompt modes understood by the Google authorization endpoint.  An empty
# prompt only shows the consent screen when no prior grant exists.
PROMPT_SILENT_IF_GRANTED = ""
PROMPT_CONSENT = "consent"


@dataclass
class TokenResponse:
    access_token: str = ""
    expires_in: int = 0
    scope: str = ""
    error: Optional[str] = None
    error_description: Optional[str] = None

    @property
    def ok(self) -> bool:
        return not self.error and bool(self.access_token)


def _expires_in(token: Mapping[str, Any]) -> int:
    try:
        return int(float(token.get("expires_in", DEFAULT_EXPIRES_IN)))
    except (TypeError, ValueError):
        return DEFAULT_EXPIRES_IN


class InstalledAppTokenClient:
    """Request access tokens through the local-server OAuth flow.

    ``flow_factory`` and ``request_factory`` exist for tests; by default the
    client uses :class:`InstalledAppFlow` and the ``google-auth`` requests
    transport.
    """

    def __init__(
        self,
        client_config: Mapping[str, Any],
        scopes: Sequence[str],
        *,
        redirect_port: int = 0,
        open_browser: bool = True,
        flow_factory: Optional[Callable[..., Any]] = None,
        request_factory: Optional[Callable[[], Any]] = None,
    ) -> None:
        self._client_config: Dict[str, Any] = dict(client_config)
        self._scopes = list(scopes)
        self._redirect_port = redirect_port
        self._open_browser = open_browser
        self._flow_factory = flow_factory or InstalledAppFlow.from_client_config
        self._request_factory = request_factory or Request

    @property
    def client_id(self) -> str:
        section = self._client_config.get("installed") or self._client_config.get("web") or {}
        return str(section.get("client_id", ""))

    @property
    def scopes(self) -> Sequence[str]:
        return tuple(self._scopes)

    def request_token(self, prompt: str = PROMPT_SILENT_IF_GRANTED) -> TokenResponse:
        """Run the consent flow and return the resulting token or error."""

        flow = self._flow_factory(self._client_config, scopes=self._scopes)
        kwargs: Dict[str, Any] = {}
        if prompt:
            kwargs["prompt"] = prompt
        try:
            flow.run_local_server(
                port=self._redirect_port,
                open_browser=self._open_browser,
                **kwargs,
            )
        except OAuth2Error as exc:
            logger.warning("OAuth provider rejected the token request: %s", exc.error)
            return TokenResponse(error=exc.error or "oauth_error", error_description=exc.description)

        token = getattr(flow.oauth2session, "token", None) or {}
        access_token = str(token.get("access_token") or "")
        if not access_token:
            return TokenResponse(error="invalid_token_response")
        scope = token.get("scope", "")
        if isinstance(scope, (list, tuple)):
            scope = " ".join(scope)
        return TokenResponse(
            access_token=access_token,
            expires_in=_expires_in(token),
            scope=str(scope or ""),
        )

    def revoke(
        self, token: str, callback: Optional[Callable[[bool], None]] = None
    ) -> threading.Thread:
        """Revoke ``token`` on a background thread.

        The thread is not a daemon so that a short-lived process still waits
        for the revocation request before exiting.
        """

        thread = threading.Thread(
            target=self._revoke,
            args=(token, callback),
            name="oauth-revoke",
        )
        thread.start()
        return thread

    def _revoke(self, token: str, callback: Optional[Callable[[bool], None]]) -> None:
        revoked = False
        try:
            response = self._request_factory()(
                url=REVOKE_URI,
                method="POST",
                body=urlencode({"token": token}),
                headers={"content-type": "application/x-www-form-urlencoded"},
                timeout=REVOKE_TIMEOUT_SECONDS,
            )
        except Exception as exc:
            logger.warning("Token revocation request failed: %s", exc)
        else:
            revoked = getattr(response, "status", None) == 200
            if revoked:
                logger.info("Token revoked")
            else:
                logger.warning("Token revocation returned HTTP %s", getattr(response, "status", "?"))
        if callback is not None:
            try:
                callback(revoked)
            except Exception:  # pragma: no cover - callback failure
                logger.exception("Revocation callback failed")


__all__ = [
    "DEFAULT_EXPIRES_IN",
    "InstalledAppTokenClient",
    "PROMPT_CONSENT",
    "PROMPT_SILENT_IF_GRANTED",
    "REVOKE_URI",
    "TokenResponse",
]
