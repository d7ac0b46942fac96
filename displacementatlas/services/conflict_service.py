"""Conflict event service for Displacement Atlas.

ACLED events per country-year through the tiered cache. A static snapshot
year only counts as a hit when it holds events. An ACLED fetch that stopped
early is served as PARTIAL and never cached, and empty live results are not
persisted.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from config.defaults import ACLED_PRELOAD_COUNTRIES
from config.settings import AtlasConfig
from displacementatlas.analysis.conflict_summary import summarize
from displacementatlas.analysis.normalizer import normalize_acled_events
from displacementatlas.cache.tiered_cache import CacheSource, TieredCache
from displacementatlas.clients.acled_client import ACLEDClient
from displacementatlas.errors import AtlasError
from displacementatlas.io.snapshots import SnapshotReader
from displacementatlas.models.cache import PartialData, Scope
from displacementatlas.models.conflict import ConflictEvent, ConflictSummary
from displacementatlas.models.results import ServiceResult
from displacementatlas.services.base import BaseService
from displacementatlas.utils.country_resolver import CountryResolver

logger = logging.getLogger(__name__)

_SOURCE = "acled"


def _decode_events(raw: Any) -> List[ConflictEvent]:
    return [ConflictEvent.from_dict(item) for item in raw]


class ConflictService(BaseService):
    """ACLED events and summaries.

    Args:
        cache: The process-wide tiered cache.
        config: Runtime configuration.
        acled_client: ACLED read client; built from config when omitted.
        snapshots: Static snapshot reader; None disables the static tier.
        resolver: Country resolver.
    """

    name = "ConflictService"

    def __init__(
        self,
        cache: TieredCache,
        config: Optional[AtlasConfig] = None,
        acled_client: Optional[ACLEDClient] = None,
        snapshots: Optional[SnapshotReader] = None,
        resolver: Optional[CountryResolver] = None,
    ) -> None:
        super().__init__(cache, config, resolver)
        self.acled = acled_client or ACLEDClient(self.config, resolver=self.resolver)
        self.snapshots = snapshots
        cache.register_source(CacheSource(
            name=_SOURCE,
            ttl_seconds=self.config.conflict_cache_ttl,
            fetch=self._fetch,
            load_static=self._load_static,
            decode=_decode_events,
            persist_empty=False,
        ))

    @staticmethod
    def scope(iso3: str, year: int) -> Scope:
        return Scope(_SOURCE, iso3.upper(), year)

    def _fetch(self, scope: Scope) -> Any:
        fetched = self.acled.fetch_events(scope.iso3, scope.year)
        events = normalize_acled_events(fetched.rows)
        if not fetched.complete:
            return PartialData(events, reason=f"stopped after page {fetched.pages}: {fetched.stop_reason}")
        return events

    def _load_static(self, scope: Scope) -> Optional[List[ConflictEvent]]:
        if self.snapshots is None:
            return None
        raw = self.snapshots.conflict_events(scope.iso3, scope.year)
        if raw is None:
            return None
        # Snapshots hold ACLED read rows, the same shape as a live page
        events = normalize_acled_events(row for row in raw if isinstance(row, dict))
        return events or None

    # ── Public API ────────────────────────────────────────────────────────────

    def events(self, iso3: str, year: int) -> ServiceResult:
        """Events for one country-year, in source order."""
        return self._execute(
            f"conflict_events({iso3.upper()}, {year})",
            lambda result: self._lookup(result, self.scope(iso3, year)),
        )

    def summary(self, iso3: str, year: int) -> ServiceResult:
        """ConflictSummary for one country-year, recomputed from the events."""
        def body(result: ServiceResult) -> ConflictSummary:
            return summarize(self._lookup(result, self.scope(iso3, year)))

        return self._execute(f"conflict_summary({iso3.upper()}, {year})", body)

    def preload(self, year: int, iso3_list: Optional[Iterable[str]] = None) -> ServiceResult:
        """Warm the cache for several countries.

        Individual failures are logged and recorded as warnings; the result
        is PARTIAL when any country failed.

        Args:
            year: Event year.
            iso3_list: Countries to warm; defaults to ACLED_PRELOAD_COUNTRIES.

        Returns:
            ServiceResult whose data maps ISO3 -> number of events loaded.
        """
        countries = [c.upper() for c in (iso3_list or ACLED_PRELOAD_COUNTRIES)]

        def body(result: ServiceResult) -> Dict[str, int]:
            loaded: Dict[str, int] = {}
            for iso3 in countries:
                try:
                    loaded[iso3] = len(self._lookup(result, self.scope(iso3, year)))
                except AtlasError as exc:
                    logger.warning("ConflictService: preload skipped %s %d: %s", iso3, year, exc)
                    self._degrade(result, f"{iso3}: {exc}")
            logger.info("ConflictService: preloaded %d/%d countries for %d",
                        len(loaded), len(countries), year)
            return loaded

        return self._execute(f"conflict_preload({year})", body)

    def available_countries(self) -> List[str]:
        """Countries with a conflict snapshot."""
        return self.snapshots.conflict_countries() if self.snapshots is not None else []

    def available_years(self, iso3: str) -> List[int]:
        """Years held in one country's conflict snapshot."""
        return self.snapshots.conflict_years(iso3) if self.snapshots is not None else []

    def close(self) -> None:
        self.acled.close()
