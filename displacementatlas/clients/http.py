"""Shared HTTP plumbing for Displacement Atlas source clients.

Session construction and response-to-JSON handling only. Each client owns
its own Session; retries are handled by the clients themselves, never by
urllib3.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests
from requests import Session
from requests.adapters import HTTPAdapter

from displacementatlas.errors import SourceFetchError

logger = logging.getLogger(__name__)


def build_session(session: Optional[Session] = None) -> Session:
    """Return ``session`` or a new Session with transport retries disabled."""
    if session is not None:
        return session
    session = Session()
    adapter = HTTPAdapter(max_retries=0)   # Clients decide what is retried
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


def parse_json_response(source: str, resp: requests.Response, what: str) -> Any:
    """Decode a 2xx response body or raise SourceFetchError.

    Args:
        source: Source name used in the error.
        resp: Response to decode.
        what: Short description of the request for messages (e.g. "page 3").

    Returns:
        Parsed JSON body.

    Raises:
        SourceFetchError: On a non-2xx status or an undecodable body.
    """
    if not 200 <= resp.status_code < 300:
        raise SourceFetchError(source, f"{what} failed: {resp.reason or 'error'}", resp.status_code)
    try:
        return resp.json()
    except ValueError as exc:
        logger.debug("%s: undecodable body for %s: %.200s", source, what, resp.text)
        raise SourceFetchError(source, f"{what} returned invalid JSON: {exc}") from exc
