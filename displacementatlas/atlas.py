"""DisplacementAtlas — the entry point that wires clients, cache and services.

One DisplacementAtlas owns one TieredCache for the life of the process;
every service shares it. Callers get ServiceResult objects back: data plus
a status, so a failed fetch is never mistaken for "no records".

Usage::

    with DisplacementAtlas() as atlas:
        flows = atlas.global_flows(2023)
        dashboard = atlas.country_dashboard("SYR", 2023)
"""

from __future__ import annotations

import itertools
import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from config.settings import AtlasConfig
from displacementatlas.cache.diagnostics import CacheDiagnostics
from displacementatlas.cache.tiered_cache import TieredCache
from displacementatlas.clients.acled_client import ACLEDClient
from displacementatlas.clients.iom_client import IOMClient
from displacementatlas.clients.unhcr_client import UNHCRClient, UNRWAClient
from displacementatlas.errors import AtlasError
from displacementatlas.io.snapshots import SnapshotReader
from displacementatlas.models.results import CountryDashboard, ServiceResult, ServiceStatus
from displacementatlas.services.conflict_service import ConflictService
from displacementatlas.services.flow_service import FlowService
from displacementatlas.services.idp_service import IdpService
from displacementatlas.utils.country_resolver import CountryResolver, get_default_resolver
from displacementatlas.utils.logging_utils import configure_logging

logger = logging.getLogger(__name__)


class LatestRequestGuard:
    """Last-requested-wins bookkeeping per view.

    Each request for a view takes a ticket with ``begin()``. Once its data
    arrives, ``commit()`` applies it only if no newer request for the same
    view has begun in the meantime.
    """

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._latest: Dict[str, int] = {}
        self._lock = threading.Lock()

    def begin(self, view: str) -> int:
        with self._lock:
            ticket = next(self._counter)
            self._latest[view] = ticket
            return ticket

    def is_current(self, view: str, ticket: int) -> bool:
        with self._lock:
            return self._latest.get(view) == ticket

    def commit(self, view: str, ticket: int, apply: Callable[[], Any]) -> bool:
        """Run ``apply`` if the ticket is still the latest for the view.

        Returns:
            True if applied, False if the request was superseded.
        """
        if not self.is_current(view, ticket):
            logger.debug("Discarding superseded result for %s (ticket %d)", view, ticket)
            return False
        apply()
        return True


class DisplacementAtlas:
    """Facade over the flow, IDP and conflict services.

    Args:
        config: Runtime configuration; built from the environment when omitted.
        cache: Tiered cache; built from config when omitted.
        snapshots: Static snapshot reader; built from ``config.snapshot_root``
            when omitted.
        resolver: Country resolver; defaults to the packaged one.
        unhcr_client, unrwa_client, iom_client, acled_client: Source clients;
            built from config when omitted (tests inject fakes).
        configure_logs: Apply config/logging.yaml with ``config.log_level`` and
            ``config.log_file`` before wiring. Off by default.
    """

    def __init__(
        self,
        config: Optional[AtlasConfig] = None,
        cache: Optional[TieredCache] = None,
        snapshots: Optional[SnapshotReader] = None,
        resolver: Optional[CountryResolver] = None,
        unhcr_client: Optional[UNHCRClient] = None,
        unrwa_client: Optional[UNRWAClient] = None,
        iom_client: Optional[IOMClient] = None,
        acled_client: Optional[ACLEDClient] = None,
        configure_logs: bool = False,
    ) -> None:
        self.config = config or AtlasConfig()
        if configure_logs:
            configure_logging(log_level=self.config.log_level, log_file=self.config.log_file)
        self.resolver = resolver or get_default_resolver()
        self.cache = cache or TieredCache.from_config(self.config)
        self.snapshots = snapshots or SnapshotReader(self.config.snapshot_root)
        self.guard = LatestRequestGuard()

        self.flows = FlowService(
            self.cache, self.config, unhcr_client, unrwa_client, self.snapshots, self.resolver,
        )
        self.idp = IdpService(self.cache, self.config, iom_client, self.snapshots, self.resolver)
        self.conflict = ConflictService(
            self.cache, self.config, acled_client, self.snapshots, self.resolver,
        )
        logger.info(
            "DisplacementAtlas ready (snapshots=%s, persisted cache=%s)",
            self.snapshots.root if self.snapshots.enabled else "off",
            self.cache.store.directory if self.cache.store is not None else "off",
        )

    # ── Flows ─────────────────────────────────────────────────────────────────

    def global_flows(self, year: int) -> ServiceResult:
        return self.flows.global_flows(year)

    def incoming_flows(self, iso3: str, year: int) -> ServiceResult:
        return self.flows.incoming_flows(iso3, year)

    def outgoing_flows(self, iso3: str, year: int) -> ServiceResult:
        return self.flows.outgoing_flows(iso3, year)

    # ── Internal displacement ─────────────────────────────────────────────────

    def idp_points_data(self, year: int) -> ServiceResult:
        return self.idp.idp_points_data(year)

    def country_idp(self, iso3: str) -> ServiceResult:
        return self.idp.country_idp(iso3)

    # ── Conflict ──────────────────────────────────────────────────────────────

    def conflict_events(self, iso3: str, year: int) -> ServiceResult:
        return self.conflict.events(iso3, year)

    def conflict_summary(self, iso3: str, year: int) -> ServiceResult:
        return self.conflict.summary(iso3, year)

    # ── Dashboard ─────────────────────────────────────────────────────────────

    def _run_section(self, name: str, call: Callable[[], ServiceResult]) -> ServiceResult:
        """Run one dashboard section; a failure never reaches the other sections."""
        start = time.monotonic()
        try:
            section = call()
        except AtlasError as exc:
            logger.exception("Dashboard: %s raised: %s", name, exc)
            section = ServiceResult(name=name, status=ServiceStatus.FAILED, error=exc)
        section.name = name
        logger.info("Dashboard: %s done (%.1fs, status=%s)", name, time.monotonic() - start, section.status)
        return section

    def country_dashboard(self, iso3: str, year: int) -> CountryDashboard:
        """Flows in and out, the year's IDP record and the conflict summary.

        Each section degrades independently; see CountryDashboard.status.
        """
        iso3 = self.resolver.resolve_iso3(iso3)
        dashboard = CountryDashboard(
            iso3=iso3,
            name=self.resolver.display_name(iso3),
            year=year,
            incoming=self._run_section("incoming", lambda: self.flows.incoming_flows(iso3, year)),
            outgoing=self._run_section("outgoing", lambda: self.flows.outgoing_flows(iso3, year)),
            idp=self._run_section("idp", lambda: self.idp.country_idp_for_year(iso3, year)),
            conflict=self._run_section("conflict", lambda: self.conflict.summary(iso3, year)),
        )
        if dashboard.status != ServiceStatus.OK:
            logger.warning("Dashboard %s %d is %s: %s", iso3, year, dashboard.status,
                           "; ".join(dashboard.warnings))
        return dashboard

    # ── Latest-request handling ───────────────────────────────────────────────

    def fetch_latest(
        self,
        view: str,
        operation: Callable[..., ServiceResult],
        *args: Any,
    ) -> Optional[ServiceResult]:
        """Run an operation for a view and keep it only if still the latest.

        Returns:
            The result, or None if a newer request for the same view began
            while this one was running.
        """
        ticket = self.guard.begin(view)
        result = operation(*args)
        committed: List[ServiceResult] = []
        self.guard.commit(view, ticket, lambda: committed.append(result))
        return committed[0] if committed else None

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def diagnostics(self) -> CacheDiagnostics:
        return CacheDiagnostics(self.cache, self.snapshots)

    def close(self) -> None:
        """Close every client session."""
        self.flows.close()
        self.idp.close()
        self.conflict.close()

    def __enter__(self) -> "DisplacementAtlas":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
