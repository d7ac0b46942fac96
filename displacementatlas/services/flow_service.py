"""Displacement flow service for Displacement Atlas.

Serves UNHCR flows for three views (global, incoming to a country, outgoing
from a country) merged with UNRWA's Palestine refugee flows where relevant:

- global: every UNRWA flow is merged in.
- incoming: UNRWA flows into the country, for UNRWA host countries only.
- outgoing: every UNRWA flow, when the country is Palestine.

UNHCR is required: its failure fails the operation. UNRWA is supplementary:
its failure degrades the result to PARTIAL with UNHCR flows only.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from config.defaults import UNRWA_HOST_COUNTRIES, UNRWA_ORIGIN_ISO
from config.settings import AtlasConfig
from displacementatlas.analysis.flow_aggregator import merge_flows
from displacementatlas.analysis.normalizer import normalize_unhcr_items, normalize_unrwa_items
from displacementatlas.cache.tiered_cache import CacheSource, TieredCache
from displacementatlas.clients.unhcr_client import UNHCRClient, UNRWAClient
from displacementatlas.errors import AtlasError
from displacementatlas.io.snapshots import SnapshotReader
from displacementatlas.models.cache import Scope
from displacementatlas.models.flows import MigrationFlow
from displacementatlas.models.results import ServiceResult
from displacementatlas.services.base import BaseService
from displacementatlas.utils.country_resolver import CountryResolver

logger = logging.getLogger(__name__)

GLOBAL_VIEW = "global"
INCOMING_VIEW = "incoming"
OUTGOING_VIEW = "outgoing"


def _decode_flows(raw: Any) -> List[MigrationFlow]:
    return [MigrationFlow.from_dict(item) for item in raw]


class FlowService(BaseService):
    """UNHCR and UNRWA flows through the tiered cache.

    Args:
        cache: The process-wide tiered cache.
        config: Runtime configuration.
        unhcr_client: UNHCR population client; built from config when omitted.
        unrwa_client: UNRWA client; built from config when omitted.
        snapshots: Static snapshot reader; None disables the static tier.
        resolver: Country resolver.
    """

    name = "FlowService"

    def __init__(
        self,
        cache: TieredCache,
        config: Optional[AtlasConfig] = None,
        unhcr_client: Optional[UNHCRClient] = None,
        unrwa_client: Optional[UNRWAClient] = None,
        snapshots: Optional[SnapshotReader] = None,
        resolver: Optional[CountryResolver] = None,
    ) -> None:
        super().__init__(cache, config, resolver)
        self.unhcr = unhcr_client or UNHCRClient(self.config)
        self.unrwa = unrwa_client or UNRWAClient(self.config)
        self.snapshots = snapshots

        ttl = self.config.displacement_cache_ttl
        cache.register_source(CacheSource(
            name="unhcr", ttl_seconds=ttl, fetch=self._fetch_unhcr,
            load_static=self._load_unhcr_static, decode=_decode_flows,
        ))
        cache.register_source(CacheSource(
            name="unrwa", ttl_seconds=ttl, fetch=self._fetch_unrwa,
            load_static=self._load_unrwa_static, decode=_decode_flows,
        ))

    # ── Scopes ────────────────────────────────────────────────────────────────

    @staticmethod
    def unhcr_scope(view: str, year: int, iso3: Optional[str] = None) -> Scope:
        if view == GLOBAL_VIEW:
            return Scope("unhcr", None, year, GLOBAL_VIEW)
        if view not in (INCOMING_VIEW, OUTGOING_VIEW) or not iso3:
            raise ValueError(f"invalid UNHCR view {view!r} for country {iso3!r}")
        return Scope("unhcr", iso3.upper(), year, view)

    @staticmethod
    def unrwa_scope(year: int) -> Scope:
        return Scope("unrwa", None, year)

    # ── Live fetch and static load (registered with the cache) ────────────────

    def _fetch_unhcr(self, scope: Scope) -> List[MigrationFlow]:
        if scope.view == INCOMING_VIEW:
            items = self.unhcr.fetch_incoming(scope.iso3, scope.year)
        elif scope.view == OUTGOING_VIEW:
            items = self.unhcr.fetch_outgoing(scope.iso3, scope.year)
        else:
            items = self.unhcr.fetch_global(scope.year)
        return normalize_unhcr_items(items, self.resolver)

    def _load_unhcr_static(self, scope: Scope) -> Optional[List[MigrationFlow]]:
        if self.snapshots is None:
            return None
        items = self.snapshots.population_items("unhcr", scope.year)
        if items is None:
            return None
        flows = normalize_unhcr_items(items, self.resolver)
        if scope.view == INCOMING_VIEW:
            return [f for f in flows if f.asylum_iso == scope.iso3]
        if scope.view == OUTGOING_VIEW:
            return [f for f in flows if f.origin_iso == scope.iso3]
        return flows

    def _fetch_unrwa(self, scope: Scope) -> List[MigrationFlow]:
        return normalize_unrwa_items(self.unrwa.fetch_year(scope.year), scope.year, self.resolver)

    def _load_unrwa_static(self, scope: Scope) -> Optional[List[MigrationFlow]]:
        if self.snapshots is None:
            return None
        items = self.snapshots.population_items("unrwa", scope.year)
        if items is None:
            return None
        return normalize_unrwa_items(items, scope.year, self.resolver)

    # ── UNRWA helpers ─────────────────────────────────────────────────────────

    def _unrwa_all(self, result: ServiceResult, year: int) -> List[MigrationFlow]:
        return self._lookup(result, self.unrwa_scope(year))

    def _unrwa_into(self, result: ServiceResult, iso3: str, year: int) -> List[MigrationFlow]:
        iso3 = iso3.upper()
        if iso3 not in UNRWA_HOST_COUNTRIES:
            return []
        return [f for f in self._unrwa_all(result, year) if f.asylum_iso == iso3]

    def _merge_supplement(
        self,
        result: ServiceResult,
        primary: List[MigrationFlow],
        supplement: Any,
        *args: Any,
    ) -> List[MigrationFlow]:
        try:
            secondary = supplement(result, *args)
        except AtlasError as exc:
            logger.warning("FlowService: UNRWA unavailable, serving UNHCR flows only: %s", exc)
            self._degrade(result, f"UNRWA flows unavailable: {exc}")
            return list(primary)
        return merge_flows(primary, secondary)

    # ── Public API ────────────────────────────────────────────────────────────

    def global_flows(self, year: int) -> ServiceResult:
        """Every flow for a year, UNRWA merged in."""
        def body(result: ServiceResult) -> List[MigrationFlow]:
            unhcr = self._lookup(result, self.unhcr_scope(GLOBAL_VIEW, year))
            return self._merge_supplement(result, unhcr, self._unrwa_all, year)

        return self._execute(f"global_flows({year})", body)

    def incoming_flows(self, iso3: str, year: int) -> ServiceResult:
        """Flows arriving in a country; UNRWA is merged for host countries."""
        def body(result: ServiceResult) -> List[MigrationFlow]:
            unhcr = self._lookup(result, self.unhcr_scope(INCOMING_VIEW, year, iso3))
            return self._merge_supplement(result, unhcr, self._unrwa_into, iso3, year)

        return self._execute(f"incoming_flows({iso3.upper()}, {year})", body)

    def outgoing_flows(self, iso3: str, year: int) -> ServiceResult:
        """Flows leaving a country; UNRWA is merged when the country is Palestine."""
        def body(result: ServiceResult) -> List[MigrationFlow]:
            unhcr = self._lookup(result, self.unhcr_scope(OUTGOING_VIEW, year, iso3))
            if iso3.upper() != UNRWA_ORIGIN_ISO:
                return list(unhcr)
            return self._merge_supplement(result, unhcr, self._unrwa_all, year)

        return self._execute(f"outgoing_flows({iso3.upper()}, {year})", body)

    def unrwa_flows(self, year: int) -> ServiceResult:
        """UNRWA flows on their own; an empty response is an OK empty list."""
        return self._execute(f"unrwa_flows({year})", lambda result: self._unrwa_all(result, year))

    def unrwa_incoming_to_country(self, iso3: str, year: int) -> ServiceResult:
        """UNRWA flows into one country; empty for countries UNRWA does not operate in."""
        return self._execute(
            f"unrwa_incoming_to_country({iso3.upper()}, {year})",
            lambda result: self._unrwa_into(result, iso3, year),
        )

    def unrwa_outgoing_from_palestine(self, year: int) -> ServiceResult:
        return self._execute(
            f"unrwa_outgoing_from_palestine({year})",
            lambda result: self._unrwa_all(result, year),
        )

    def close(self) -> None:
        self.unhcr.close()
        self.unrwa.close()
