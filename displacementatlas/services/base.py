"""BaseService for Displacement Atlas.

Services sit between the tiered cache and callers. Each public operation
runs through ``_execute()``, which times it and turns a source failure
(AtlasError) into a FAILED ServiceResult carrying the error, so an empty
record set always means "confirmed no records".
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

from config.settings import AtlasConfig
from displacementatlas.cache.tiered_cache import TieredCache
from displacementatlas.errors import AtlasError
from displacementatlas.models.cache import Scope
from displacementatlas.models.results import ServiceResult, ServiceStatus
from displacementatlas.utils.country_resolver import CountryResolver, get_default_resolver

logger = logging.getLogger(__name__)


class BaseService:
    """Common plumbing for the flow, IDP and conflict services.

    Args:
        cache: The process-wide tiered cache.
        config: Runtime configuration.
        resolver: Country resolver; defaults to the packaged one.
    """

    name: str = "BaseService"

    def __init__(
        self,
        cache: TieredCache,
        config: Optional[AtlasConfig] = None,
        resolver: Optional[CountryResolver] = None,
    ) -> None:
        self.cache = cache
        self.config = config or AtlasConfig()
        self.resolver = resolver or get_default_resolver()

    def _execute(self, operation: str, body: Callable[[ServiceResult], Any]) -> ServiceResult:
        """Run ``body`` and wrap its outcome.

        ``body`` receives the ServiceResult being built so it can record
        tiers and warnings; its return value becomes ``result.data``.

        Args:
            operation: Label used in the result and in logs.
            body: The operation itself.

        Returns:
            The ServiceResult; FAILED with ``error`` set if ``body`` raised
            an AtlasError.
        """
        result = ServiceResult(name=operation)
        start = time.monotonic()
        try:
            result.data = body(result)
        except AtlasError as exc:
            result.status = ServiceStatus.FAILED
            result.error = exc
            result.data = None
            logger.error("%s: %s failed: %s", self.name, operation, exc)
        result.elapsed_seconds = time.monotonic() - start
        logger.debug(
            "%s: %s finished in %.2fs (status=%s)",
            self.name, operation, result.elapsed_seconds, result.status,
        )
        return result

    def _lookup(self, result: ServiceResult, scope: Scope) -> Any:
        """Look a scope up in the cache, recording tier and degradation."""
        hit = self.cache.lookup(scope)
        result.tiers[scope.key()] = hit.tier
        if hit.stale:
            result.status = ServiceStatus.PARTIAL
            result.warnings.append(f"{scope.key()}: live fetch failed, serving cached data past its TTL")
        if hit.partial:
            result.status = ServiceStatus.PARTIAL
            result.warnings.append(f"{scope.key()}: live fetch stopped early, results are incomplete")
        return hit.data

    @staticmethod
    def _degrade(result: ServiceResult, message: str) -> None:
        result.status = ServiceStatus.PARTIAL
        result.warnings.append(message)
