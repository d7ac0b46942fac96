"""IOM Displacement Tracking Matrix (DTM) API client for Displacement Atlas.

Two endpoints are used:
- ``/Common/GetAllCountryList``: the countries DTM reports on.
- ``/IdpAdmin0Data/GetAdmin0Datav2``: admin-0 IDP figures for one country,
  every operation, over a wide reporting window.

Both return the envelope ``{result, statusCode, isSuccess, errorMessages,
totalRecordsCount}``. Per-country failures (HTTP error, timeout,
``isSuccess: false``) are logged and yield an empty list so that a batch
over many countries never aborts on one bad country. A failed country list
fetch raises, since nothing can proceed without it.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Iterable, List, Optional

import requests
from requests import Session

from config.defaults import IOM_FROM_REPORTING_DATE, IOM_TO_REPORTING_DATE
from config.settings import AtlasConfig
from displacementatlas.clients.http import build_session, parse_json_response
from displacementatlas.errors import SourceFetchError
from displacementatlas.models.idp import IomCountry

logger = logging.getLogger(__name__)

_SOURCE = "iom"


def _unwrap_envelope(body: Any, what: str) -> List[Dict[str, Any]]:
    """Return ``result`` rows from a DTM envelope or raise SourceFetchError."""
    if not isinstance(body, dict):
        raise SourceFetchError(_SOURCE, f"{what} returned a non-object body")
    if body.get("isSuccess") is False:
        messages = body.get("errorMessages") or []
        raise SourceFetchError(
            _SOURCE, f"{what} reported failure: {'; '.join(map(str, messages)) or 'no message'}",
            body.get("statusCode"),
        )
    result = body.get("result")
    return list(result) if isinstance(result, list) else []


class IOMClient:
    """Client for the IOM DTM REST API.

    Args:
        config: Runtime configuration (base URL, timeout, inter-country delay).
        session: Optional pre-built requests Session (tests inject one).
    """

    def __init__(self, config: Optional[AtlasConfig] = None, session: Optional[Session] = None) -> None:
        self.config = config or AtlasConfig()
        self._session = build_session(session)

    def _get(self, endpoint: str, params: Optional[Dict[str, Any]], what: str) -> List[Dict[str, Any]]:
        url = f"{self.config.iom_base_url.rstrip('/')}/{endpoint}"
        try:
            resp = self._session.get(url, params=params, timeout=self.config.iom_request_timeout)
        except requests.exceptions.Timeout as exc:
            raise SourceFetchError(
                _SOURCE, f"{what} timed out after {self.config.iom_request_timeout}s"
            ) from exc
        except requests.exceptions.RequestException as exc:
            raise SourceFetchError(_SOURCE, f"{what} request failed: {exc}") from exc
        return _unwrap_envelope(parse_json_response(_SOURCE, resp, what), what)

    def fetch_country_list(self) -> List[IomCountry]:
        """Fetch the DTM country list.

        Returns:
            Countries with a name and an ISO3 code (rows lacking either are skipped).

        Raises:
            SourceFetchError: If the list cannot be fetched.
        """
        rows = self._get("Common/GetAllCountryList", None, "country list")
        countries: List[IomCountry] = []
        for row in rows:
            name = str(row.get("admin0Name") or "").strip()
            iso3 = str(row.get("admin0Pcode") or "").strip().upper()
            if name and iso3:
                countries.append(IomCountry(name=name, iso3=iso3))
        logger.info("IOM: %d countries in DTM country list", len(countries))
        return countries

    def fetch_country_points(self, country_name: str) -> List[Dict[str, Any]]:
        """Fetch every admin-0 row for one country across all operations.

        Args:
            country_name: DTM ``admin0Name`` of the country.

        Returns:
            Raw ``result`` rows, or [] when the fetch fails for any reason.
        """
        params = {
            "CountryName": country_name,
            "Operation": "",
            "FromReportingDate": IOM_FROM_REPORTING_DATE,
            "ToReportingDate": IOM_TO_REPORTING_DATE,
            "FromRoundNumber": "",
            "ToRoundNumber": "",
        }
        try:
            rows = self._get("IdpAdmin0Data/GetAdmin0Datav2", params, f"IDP data for {country_name}")
        except SourceFetchError as exc:
            logger.warning("IOM: skipping %s: %s", country_name, exc)
            return []
        logger.debug("IOM: %d rows for %s", len(rows), country_name)
        return rows

    def fetch_country(self, iso3: str) -> List[Dict[str, Any]]:
        """Fetch raw rows for one country by ISO3.

        Raises:
            SourceFetchError: If the country list cannot be fetched.
        """
        iso3 = iso3.upper()
        for country in self.fetch_country_list():
            if country.iso3 == iso3:
                return self.fetch_country_points(country.name)
        logger.info("IOM: %s is not in the DTM country list", iso3)
        return []

    def fetch_all(
        self, countries: Optional[Iterable[IomCountry]] = None
    ) -> Dict[str, List[Dict[str, Any]]]:
        """Fetch raw rows for many countries, sequentially.

        Countries returning no rows are left out. Results are keyed by the
        first row's ``admin0Pcode`` (falling back to the list's ISO3).

        Args:
            countries: Countries to fetch; defaults to the full DTM list.

        Returns:
            ISO3 -> raw rows.

        Raises:
            SourceFetchError: If ``countries`` is None and the country list
                cannot be fetched.
        """
        if countries is None:
            countries = self.fetch_country_list()
        countries = list(countries)

        results: Dict[str, List[Dict[str, Any]]] = {}
        for index, country in enumerate(countries):
            if index and self.config.iom_country_delay > 0:
                time.sleep(self.config.iom_country_delay)
            rows = self.fetch_country_points(country.name)
            if not rows:
                continue
            key = str(rows[0].get("admin0Pcode") or country.iso3).upper()
            results[key] = rows

        logger.info("IOM: fetched IDP rows for %d/%d countries", len(results), len(countries))
        return results

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self._session.close()

    def __enter__(self) -> "IOMClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
