"""UNHCR population API client for Displacement Atlas.

Handles request construction and pagination for the population endpoint
(``/population/v1/population/``) and the UNRWA endpoint on the same host.
Returns raw ``items[]`` rows only; normalization happens in
analysis/normalizer.py.

Pagination contract: page 1 is fetched first and reports ``maxPages``;
pages 2..min(maxPages, unhcr_max_pages) are then issued concurrently and the
results reassembled in page order. Any non-2xx page fails the whole fetch.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Tuple

import requests
from requests import Session

from config.defaults import UNRWA_ORIGIN_ISO
from config.settings import AtlasConfig
from displacementatlas.clients.http import build_session, parse_json_response
from displacementatlas.errors import SourceFetchError

logger = logging.getLogger(__name__)

QueryParams = List[Tuple[str, str]]


class PopulationApiClient:
    """Paginated client for one UNHCR-hosted population endpoint.

    Args:
        config: Runtime configuration (base URL, page limit, max pages,
            worker count, request timeout).
        session: Optional pre-built requests Session (tests inject one).
    """

    source: str = "unhcr"
    path: str = "population"

    def __init__(self, config: Optional[AtlasConfig] = None, session: Optional[Session] = None) -> None:
        self.config = config or AtlasConfig()
        self._session = build_session(session)

    @property
    def url(self) -> str:
        return f"{self.config.unhcr_base_url.rstrip('/')}/{self.path}/"

    def build_params(
        self,
        year: int,
        origin_iso: Optional[str] = None,
        asylum_iso: Optional[str] = None,
        page: Optional[int] = None,
    ) -> QueryParams:
        """Build the query for one scope.

        A missing origin becomes ``coo_all=true`` and a missing asylum
        country becomes ``coa_all=true``. The year is sent as ``year[]``.

        Args:
            year: Reporting year.
            origin_iso: Country of origin filter.
            asylum_iso: Country of asylum filter.
            page: Page number, omitted when None.

        Returns:
            Ordered (name, value) pairs.
        """
        params: QueryParams = [("cf_type", "ISO")]
        params.append(("coo", origin_iso) if origin_iso else ("coo_all", "true"))
        params.append(("coa", asylum_iso) if asylum_iso else ("coa_all", "true"))
        params.append(("year[]", str(year)))
        params.append(("limit", str(self.config.unhcr_page_limit)))
        if page is not None:
            params.append(("page", str(page)))
        return params

    def _fetch_page(self, params: QueryParams, page: int) -> Dict[str, Any]:
        try:
            resp = self._session.get(
                self.url,
                params=params + [("page", str(page))],
                timeout=self.config.unhcr_request_timeout,
            )
        except requests.exceptions.RequestException as exc:
            raise SourceFetchError(self.source, f"page {page} request failed: {exc}") from exc
        body = parse_json_response(self.source, resp, f"page {page}")
        if not isinstance(body, dict):
            raise SourceFetchError(self.source, f"page {page} returned a non-object body")
        return body

    def fetch_scope(
        self,
        year: int,
        origin_iso: Optional[str] = None,
        asylum_iso: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Fetch every row for one scope.

        Args:
            year: Reporting year.
            origin_iso: Country of origin filter (None for all origins).
            asylum_iso: Country of asylum filter (None for all destinations).

        Returns:
            Raw rows from all pages, in page order.

        Raises:
            SourceFetchError: If any page fails; nothing partial is returned.
        """
        params = self.build_params(year, origin_iso, asylum_iso)
        first = self._fetch_page(params, 1)
        items: List[Dict[str, Any]] = list(first.get("items") or [])

        try:
            max_pages = int(first.get("maxPages") or 1)
        except (TypeError, ValueError):
            max_pages = 1
        last_page = min(max_pages, self.config.unhcr_max_pages)
        if max_pages > self.config.unhcr_max_pages:
            logger.warning(
                "%s: scope reports %d pages; fetching the first %d only",
                self.source, max_pages, self.config.unhcr_max_pages,
            )

        if last_page > 1:
            remaining = range(2, last_page + 1)
            workers = min(self.config.unhcr_max_workers, len(remaining))
            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = {page: pool.submit(self._fetch_page, params, page) for page in remaining}
                # Completion order is irrelevant; concatenate in page order
                for page in remaining:
                    items.extend(futures[page].result().get("items") or [])

        logger.info(
            "%s: fetched %d rows over %d page(s) (year=%s, coo=%s, coa=%s)",
            self.source, len(items), last_page, year, origin_iso or "all", asylum_iso or "all",
        )
        return items

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self._session.close()

    def __enter__(self) -> "PopulationApiClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


class UNHCRClient(PopulationApiClient):
    """Refugee and asylum-seeker flows from the UNHCR population endpoint."""

    source = "unhcr"
    path = "population"

    def fetch_global(self, year: int) -> List[Dict[str, Any]]:
        """Every origin -> asylum row for a year."""
        return self.fetch_scope(year)

    def fetch_incoming(self, asylum_iso: str, year: int) -> List[Dict[str, Any]]:
        """Rows for flows arriving in one country."""
        return self.fetch_scope(year, asylum_iso=asylum_iso)

    def fetch_outgoing(self, origin_iso: str, year: int) -> List[Dict[str, Any]]:
        """Rows for flows leaving one country."""
        return self.fetch_scope(year, origin_iso=origin_iso)


class UNRWAClient(PopulationApiClient):
    """Palestine refugees registered with UNRWA, by host country.

    The endpoint only serves one origin, so every query is pinned to
    ``coo=PSE`` with all destinations.
    """

    source = "unrwa"
    path = "unrwa"

    def fetch_year(self, year: int) -> List[Dict[str, Any]]:
        """Raw UNRWA rows for a year; an empty or missing ``items`` gives []."""
        return self.fetch_scope(year, origin_iso=UNRWA_ORIGIN_ISO)
