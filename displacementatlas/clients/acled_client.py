"""ACLED read API client for Displacement Atlas.

Pages through ``/api/acled/read`` for one country-year with a bearer token
from AcledTokenManager. Returns raw rows only; normalization happens in
analysis/normalizer.py.

Failure handling per page:
- 401: refresh the token once and retry the same page. A second 401 for
  the same page is not retried again.
- 403: ACLED's rate-limit signal. Sleep the fixed backoff and abandon the fetch.
- Any failure after at least one page was collected returns the collected
  rows flagged incomplete; a failure on the first page raises.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import requests
from requests import Session

from config.settings import AtlasConfig
from displacementatlas.clients.acled_auth import AcledTokenManager
from displacementatlas.clients.http import build_session, parse_json_response
from displacementatlas.errors import (
    AuthenticationError,
    RateLimitError,
    SourceFetchError,
)
from displacementatlas.utils.country_resolver import CountryResolver, get_default_resolver

logger = logging.getLogger(__name__)

_SOURCE = "acled"

# Only the columns the normalizer reads are requested
ACLED_FIELDS = (
    "event_id_cnty",
    "event_date",
    "year",
    "event_type",
    "sub_event_type",
    "actor1",
    "actor2",
    "admin1",
    "admin2",
    "admin3",
    "location",
    "latitude",
    "longitude",
    "fatalities",
    "civilian_targeting",
)


@dataclass
class AcledFetchResult:
    """Rows fetched for one country-year and whether the fetch ran to the end."""

    iso3: str
    year: int
    rows: List[Dict[str, Any]] = field(default_factory=list)
    pages: int = 0
    complete: bool = True
    stop_reason: str = ""


class ACLEDClient:
    """Client for the ACLED read endpoint.

    Args:
        config: Runtime configuration (read URL, page size, timeouts, delays).
        token_manager: Token lifecycle holder; built from config when omitted.
        session: Optional pre-built requests Session (tests inject one).
        resolver: Country resolver used for ISO3 -> ACLED country names.
        sleep: Sleep function; tests substitute a no-op.
    """

    def __init__(
        self,
        config: Optional[AtlasConfig] = None,
        token_manager: Optional[AcledTokenManager] = None,
        session: Optional[Session] = None,
        resolver: Optional[CountryResolver] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config or AtlasConfig()
        self._session = build_session(session)
        self.tokens = token_manager or AcledTokenManager(self.config, session=self._session)
        self.resolver = resolver or get_default_resolver()
        self._sleep = sleep

    def fetch_page(self, country: str, year: int, page: int) -> List[Dict[str, Any]]:
        """Fetch one page, refreshing the token at most once on a 401.

        Args:
            country: ACLED country name.
            year: Event year.
            page: 1-based page number.

        Returns:
            Raw rows from ``data``.

        Raises:
            AuthenticationError: If the retried request is rejected again, or
                no token can be obtained.
            RateLimitError: On a 403 response.
            SourceFetchError: On any other transport failure.
        """
        params = {
            "country": country,
            "year": str(year),
            "limit": str(self.config.acled_page_size),
            "page": str(page),
            "fields": "|".join(ACLED_FIELDS),
        }
        refreshed = False
        while True:
            headers = self.tokens.auth_headers()
            try:
                resp = self._session.get(
                    self.config.acled_read_url,
                    params=params,
                    headers=headers,
                    timeout=self.config.acled_page_timeout,
                )
            except requests.exceptions.Timeout as exc:
                raise SourceFetchError(
                    _SOURCE, f"page {page} timed out after {self.config.acled_page_timeout}s"
                ) from exc
            except requests.exceptions.RequestException as exc:
                raise SourceFetchError(_SOURCE, f"page {page} request failed: {exc}") from exc

            if resp.status_code == 401:
                if refreshed:
                    raise AuthenticationError(_SOURCE, f"page {page} rejected after token refresh", 401)
                logger.info("ACLED returned 401 for page %d; refreshing token and retrying", page)
                self.tokens.refresh()
                refreshed = True
                continue

            if resp.status_code == 403:
                raise RateLimitError(_SOURCE, f"page {page} rate limited", 403)

            body = parse_json_response(_SOURCE, resp, f"page {page}")
            data = body.get("data") if isinstance(body, dict) else None
            return list(data) if isinstance(data, list) else []

    def fetch_events(self, iso3: str, year: int) -> AcledFetchResult:
        """Fetch every event for one country-year.

        Paging stops at the first page holding fewer rows than the page size.

        Args:
            iso3: Country ISO3 code.
            year: Event year.

        Returns:
            AcledFetchResult; ``complete`` is False when the fetch stopped
            early and ``rows`` holds what was collected before the stop.

        Raises:
            SourceFetchError: If the country has no ACLED name, or the first
                page fails (AuthenticationError / RateLimitError included).
        """
        iso3 = iso3.upper()
        country = self.resolver.acled_country_name(iso3)
        if not country:
            raise SourceFetchError(_SOURCE, f"no ACLED country mapping for {iso3}")

        result = AcledFetchResult(iso3=iso3, year=year)
        page = 1
        while page <= self.config.acled_max_pages:
            try:
                batch = self.fetch_page(country, year, page)
            except SourceFetchError as exc:
                if isinstance(exc, RateLimitError):
                    logger.warning(
                        "ACLED rate limited on page %d; backing off %.1fs and stopping",
                        page, self.config.acled_rate_limit_backoff,
                    )
                    self._sleep(self.config.acled_rate_limit_backoff)
                if not result.rows:
                    raise
                logger.warning(
                    "ACLED %s %d: stopping at page %d with %d rows kept: %s",
                    iso3, year, page, len(result.rows), exc,
                )
                result.complete = False
                result.stop_reason = type(exc).__name__
                return result

            result.rows.extend(batch)
            result.pages = page
            logger.debug("ACLED %s %d: page %d -> %d rows (total %d)",
                         iso3, year, page, len(batch), len(result.rows))
            if len(batch) < self.config.acled_page_size:
                break
            page += 1
            if self.config.acled_page_delay > 0:
                self._sleep(self.config.acled_page_delay)
        else:
            logger.warning("ACLED %s %d: reached the %d-page limit",
                           iso3, year, self.config.acled_max_pages)
            result.complete = False
            result.stop_reason = "max_pages"

        logger.info("ACLED %s %d: %d events over %d page(s)", iso3, year, len(result.rows), result.pages)
        return result

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self._session.close()

    def __enter__(self) -> "ACLEDClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
