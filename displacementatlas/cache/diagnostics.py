"""Cache diagnostics for Displacement Atlas.

An optional inspection interface attached explicitly to one TieredCache
(and optionally the snapshot reader behind its static tier). Nothing here is
registered globally.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from displacementatlas.cache.tiered_cache import TieredCache
from displacementatlas.io.snapshots import (
    CONFLICT_DIR,
    CONFLICT_METADATA_FILE,
    IOM_SNAPSHOT_FILE,
    POPULATION_SNAPSHOT_FILES,
    SnapshotReader,
)

logger = logging.getLogger(__name__)


class CacheDiagnostics:
    """Reports on, and clears, the tiers of one cache.

    Args:
        cache: The cache to inspect.
        snapshots: Reader for the static tier, if one is configured.
    """

    def __init__(self, cache: TieredCache, snapshots: Optional[SnapshotReader] = None) -> None:
        self.cache = cache
        self.snapshots = snapshots

    def entry_counts(self) -> Dict[str, Dict[str, int]]:
        """Per registered source: entries held in memory and on disk."""
        return {
            name: {
                "memory": len(self.cache.memory_keys(name)),
                "persisted": len(self.cache.persisted_keys(name)),
            }
            for name in self.cache.source_names
        }

    def snapshot_status(self) -> Dict[str, Dict[str, Any]]:
        """Availability and ``lastFetched`` of each static snapshot."""
        if self.snapshots is None:
            return {}
        conflict_meta = f"{CONFLICT_DIR}/{CONFLICT_METADATA_FILE}"
        status: Dict[str, Dict[str, Any]] = {
            "acled": {
                "available": self.snapshots.exists(conflict_meta),
                "last_fetched": self.snapshots.last_fetched(conflict_meta),
                "countries": len(self.snapshots.conflict_countries()),
            },
            "iom": {
                "available": self.snapshots.exists(IOM_SNAPSHOT_FILE),
                "last_fetched": self.snapshots.last_fetched(IOM_SNAPSHOT_FILE),
            },
        }
        for source, name in POPULATION_SNAPSHOT_FILES.items():
            status[source] = {
                "available": self.snapshots.exists(name),
                "last_fetched": self.snapshots.last_fetched(name),
                "years": self.snapshots.population_years(source),
            }
        return status

    def report(self) -> Dict[str, Any]:
        """Everything above in one dict."""
        return {
            "entries": self.entry_counts(),
            "snapshots": self.snapshot_status(),
            "serve_stale_on_error": self.cache.serve_stale_on_error,
        }

    def clear(self, source: Optional[str] = None) -> Dict[str, int]:
        """Empty the memory and persisted tiers (one source, or all).

        The static tier is read-only and left alone.

        Returns:
            Number of entries removed per tier.
        """
        removed = {
            "memory": self.cache.clear_memory(source),
            "persisted": self.cache.clear_persisted(source),
        }
        logger.info(
            "Cleared %d memory and %d persisted entries (%s)",
            removed["memory"], removed["persisted"], source or "all sources",
        )
        return removed
