"""ACLED OAuth2 token lifecycle for Displacement Atlas.

State machine::

    UNAUTHENTICATED --login--> AUTHENTICATED
    AUTHENTICATED --refresh (proactive or on 401)--> AUTHENTICATED
    AUTHENTICATED --refresh fails--> UNAUTHENTICATED --login--> AUTHENTICATED
    login and refresh both fail --> AuthenticationError raised to the caller

A refresh is triggered proactively once the remaining validity drops below
``acled_refresh_threshold`` seconds, or reactively by the read client after a
401. Credentials come from AtlasConfig (environment): a username/password
pair for the ``password`` grant, and/or an access/refresh token pair.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

import requests
from requests import Session

from config.settings import AtlasConfig
from displacementatlas.clients.http import build_session
from displacementatlas.errors import AuthenticationError

logger = logging.getLogger(__name__)

_SOURCE = "acled"


class TokenState:
    """States of the ACLED token lifecycle."""

    UNAUTHENTICATED = "UNAUTHENTICATED"
    AUTHENTICATED = "AUTHENTICATED"


class AcledTokenManager:
    """Holds and renews the ACLED bearer token.

    Args:
        config: Runtime configuration (token URL, client id, credentials,
            default validity, refresh threshold).
        session: Optional pre-built requests Session (tests inject one).
        clock: Seconds-since-epoch source; tests substitute a fake clock.
    """

    def __init__(
        self,
        config: Optional[AtlasConfig] = None,
        session: Optional[Session] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or AtlasConfig()
        self._session = build_session(session)
        self._clock = clock
        self._lock = threading.RLock()

        self.access_token: Optional[str] = self.config.acled_access_token
        self.refresh_token: Optional[str] = self.config.acled_refresh_token
        self.expires_at: float = 0.0
        self.state = TokenState.UNAUTHENTICATED
        if self.access_token:
            # A pre-issued token is assumed valid for the default lifetime
            self.expires_at = self._clock() + self.config.acled_default_token_ttl
            self.state = TokenState.AUTHENTICATED

    # ── Public API ─────────────────────────────────────────────────────────────

    def get_token(self) -> str:
        """Return a usable access token, logging in or refreshing as needed.

        Raises:
            AuthenticationError: If no token can be obtained.
        """
        with self._lock:
            if self.state == TokenState.UNAUTHENTICATED:
                if self._has_password():
                    self.login()
                else:
                    self.refresh()
            elif self.needs_refresh():
                logger.info("ACLED token expires within %ds; refreshing",
                            self.config.acled_refresh_threshold)
                self.refresh()
            if not self.access_token:
                raise AuthenticationError(_SOURCE, "no access token after authentication")
            return self.access_token

    def auth_headers(self) -> Dict[str, str]:
        """Authorization headers for a read request."""
        return {
            "Authorization": f"Bearer {self.get_token()}",
            "Content-Type": "application/json",
        }

    def needs_refresh(self) -> bool:
        """True once remaining validity is under the refresh threshold."""
        return self._clock() > self.expires_at - self.config.acled_refresh_threshold

    def refresh(self) -> None:
        """Renew the access token with the refresh grant.

        On failure the manager drops to UNAUTHENTICATED and falls back to a
        password login.

        Raises:
            AuthenticationError: If the refresh and the fallback login both fail.
        """
        with self._lock:
            try:
                if not self.refresh_token:
                    raise AuthenticationError(_SOURCE, "no refresh token available")
                payload = self._token_request(
                    {
                        "refresh_token": self.refresh_token,
                        "grant_type": "refresh_token",
                        "client_id": self.config.acled_client_id,
                    },
                    flow="refresh",
                )
            except AuthenticationError as exc:
                logger.warning("ACLED token refresh failed (%s); falling back to login", exc)
                self.invalidate()
                try:
                    self.login()
                except AuthenticationError as login_exc:
                    raise AuthenticationError(
                        _SOURCE, f"refresh failed ({exc}) and login failed ({login_exc})"
                    ) from login_exc
                return
            self._apply_tokens(payload)
            logger.info("ACLED token refreshed")

    def login(self) -> None:
        """Obtain a fresh token pair with the password grant.

        Raises:
            AuthenticationError: If credentials are missing or rejected.
        """
        with self._lock:
            if not self._has_password():
                raise AuthenticationError(
                    _SOURCE, "no credentials configured (set ACLED_USERNAME and ACLED_PASSWORD)"
                )
            payload = self._token_request(
                {
                    "username": self.config.acled_username,
                    "password": self.config.acled_password,
                    "grant_type": "password",
                    "client_id": self.config.acled_client_id,
                },
                flow="password",
            )
            self._apply_tokens(payload)
            logger.info("ACLED login succeeded")

    def invalidate(self) -> None:
        """Forget the current access token (keeps the refresh token)."""
        with self._lock:
            self.access_token = None
            self.expires_at = 0.0
            self.state = TokenState.UNAUTHENTICATED

    # ── Internals ──────────────────────────────────────────────────────────────

    def _has_password(self) -> bool:
        return bool(self.config.acled_username and self.config.acled_password)

    def _token_request(self, data: Dict[str, Any], flow: str) -> Dict[str, Any]:
        try:
            resp = self._session.post(
                self.config.acled_token_url,
                data=data,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.config.acled_token_timeout,
            )
        except requests.exceptions.RequestException as exc:
            raise AuthenticationError(_SOURCE, f"{flow} grant request failed: {exc}") from exc

        if resp.status_code != 200:
            logger.debug("ACLED %s grant body: %.400s", flow, resp.text)
            raise AuthenticationError(_SOURCE, f"{flow} grant rejected", resp.status_code)
        try:
            payload = resp.json()
        except ValueError as exc:
            raise AuthenticationError(_SOURCE, f"{flow} grant returned invalid JSON") from exc
        if not isinstance(payload, dict) or not payload.get("access_token"):
            raise AuthenticationError(_SOURCE, f"{flow} grant response missing access_token")
        return payload

    def _apply_tokens(self, payload: Dict[str, Any]) -> None:
        self.access_token = payload["access_token"]
        if payload.get("refresh_token"):
            self.refresh_token = payload["refresh_token"]
        try:
            ttl = float(payload.get("expires_in") or self.config.acled_default_token_ttl)
        except (TypeError, ValueError):
            ttl = float(self.config.acled_default_token_ttl)
        self.expires_at = self._clock() + ttl
        self.state = TokenState.AUTHENTICATED

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self._session.close()
