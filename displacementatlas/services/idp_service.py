"""Internal displacement service for Displacement Atlas.

Two cache scopes share the ``iom`` source: the global scope holds every
country's yearly IDP records (what the map layer needs for one year), and a
country scope holds a single country's records for the drill-down view.

A country absent from a present IOM snapshot has no DTM coverage; it is
served as a record with ``has_data=False`` rather than fetched live.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from config.settings import AtlasConfig
from displacementatlas.analysis.idp_aggregator import (
    available_idp_years,
    countries_for_year,
    get_idp_data_for_year,
    process_all_idp_data,
    process_country_idp_data,
)
from displacementatlas.analysis.normalizer import normalize_iom_points
from displacementatlas.cache.tiered_cache import CacheSource, TieredCache
from displacementatlas.clients.iom_client import IOMClient
from displacementatlas.io.snapshots import SnapshotReader
from displacementatlas.models.cache import Scope
from displacementatlas.models.idp import IdpYearlyRecord, IomCountryIdpData
from displacementatlas.models.results import ServiceResult
from displacementatlas.services.base import BaseService
from displacementatlas.utils.country_resolver import CountryResolver

logger = logging.getLogger(__name__)

_SOURCE = "iom"


class IdpService(BaseService):
    """IOM DTM data through the tiered cache.

    Args:
        cache: The process-wide tiered cache.
        config: Runtime configuration.
        iom_client: DTM client; built from config when omitted.
        snapshots: Static snapshot reader; None disables the static tier.
        resolver: Country resolver.
    """

    name = "IdpService"

    def __init__(
        self,
        cache: TieredCache,
        config: Optional[AtlasConfig] = None,
        iom_client: Optional[IOMClient] = None,
        snapshots: Optional[SnapshotReader] = None,
        resolver: Optional[CountryResolver] = None,
    ) -> None:
        super().__init__(cache, config, resolver)
        self.iom = iom_client or IOMClient(self.config)
        self.snapshots = snapshots
        cache.register_source(CacheSource(
            name=_SOURCE,
            ttl_seconds=self.config.displacement_cache_ttl,
            fetch=self._fetch,
            load_static=self._load_static,
            decode=self._decode,
        ))

    @staticmethod
    def dataset_scope() -> Scope:
        return Scope(_SOURCE)

    @staticmethod
    def country_scope(iso3: str) -> Scope:
        return Scope(_SOURCE, iso3.upper())

    def _no_data(self, iso3: str) -> IomCountryIdpData:
        return IomCountryIdpData(
            country_name=self.resolver.display_name(iso3), iso3=iso3, has_data=False,
        )

    # ── Live fetch, static load, decode ───────────────────────────────────────

    def _fetch(self, scope: Scope) -> Any:
        if scope.is_global:
            raw = self.iom.fetch_all()
            points = {iso3: normalize_iom_points(rows) for iso3, rows in raw.items()}
            return process_all_idp_data(points, self.config.iom_priority_operation)
        country = process_country_idp_data(
            normalize_iom_points(self.iom.fetch_country(scope.iso3)),
            scope.iso3,
            self.config.iom_priority_operation,
        )
        return country or self._no_data(scope.iso3)

    def _load_static(self, scope: Scope) -> Optional[Any]:
        if self.snapshots is None:
            return None
        dataset = self.snapshots.iom_dataset()
        if dataset is None:
            return None
        if scope.is_global:
            return {
                iso3.upper(): IomCountryIdpData.from_snapshot(raw, iso3)
                for iso3, raw in dataset.items()
                if isinstance(raw, dict)
            }
        raw = dataset.get(scope.iso3)
        if not isinstance(raw, dict):
            return self._no_data(scope.iso3)
        return IomCountryIdpData.from_snapshot(raw, scope.iso3)

    @staticmethod
    def _decode(raw: Any) -> Any:
        if "iso3" in raw:
            return IomCountryIdpData.from_dict(raw)
        return {iso3: IomCountryIdpData.from_dict(item) for iso3, item in raw.items()}

    # ── Public API ────────────────────────────────────────────────────────────

    def dataset(self) -> ServiceResult:
        """Every country's yearly IDP records, keyed by ISO3."""
        return self._execute("idp_dataset", lambda result: self._lookup(result, self.dataset_scope()))

    def idp_points_data(self, year: int) -> ServiceResult:
        """ISO3 -> the year's record, for every country reporting that year."""
        def body(result: ServiceResult) -> Dict[str, IdpYearlyRecord]:
            return countries_for_year(self._lookup(result, self.dataset_scope()), year)

        return self._execute(f"idp_points_data({year})", body)

    def country_idp(self, iso3: str) -> ServiceResult:
        """One country's records; ``has_data`` is False without DTM coverage."""
        iso3 = iso3.upper()

        def body(result: ServiceResult) -> IomCountryIdpData:
            # A dataset already in memory answers without another lookup
            dataset = self.cache.peek(self.dataset_scope())
            if dataset is not None:
                return dataset.get(iso3) or self._no_data(iso3)
            return self._lookup(result, self.country_scope(iso3))

        return self._execute(f"country_idp({iso3})", body)

    def country_idp_for_year(self, iso3: str, year: int) -> ServiceResult:
        """One country's record for one year, or None when it did not report."""
        result = self.country_idp(iso3)
        if result.ok:
            result.data = get_idp_data_for_year(result.data, year)
        result.name = f"country_idp_for_year({iso3.upper()}, {year})"
        return result

    def available_years(self) -> ServiceResult:
        """Year -> ISO3 codes reporting that year."""
        def body(result: ServiceResult) -> Dict[int, List[str]]:
            return available_idp_years(self._lookup(result, self.dataset_scope()))

        return self._execute("idp_available_years", body)

    def close(self) -> None:
        self.iom.close()
