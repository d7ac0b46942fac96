"""Tiered cache manager for Displacement Atlas.

Lookup order for a scope, stopping at the first hit:

1. memory     in-process dict, lives as long as the TieredCache
2. static     pre-generated snapshot, read-only
3. persisted  ``PersistedStore`` envelope, valid while younger than the source TTL
4. live       the source's fetch function

Write-backs: memory is filled on every static, persisted or live hit. The
persisted store is written only after a live fetch. A live fetch that
returns ``PartialData`` is handed to the caller and written to no tier.

A live fetch that raises propagates to the caller. The one exception is a
stale persisted entry when ``serve_stale_on_error`` is set: it is kept aside
during the live fetch and served, flagged stale, only if that fetch raises
an AtlasError.

Concurrent lookups of one scope may both go live; the last write wins.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from config.settings import AtlasConfig
from displacementatlas.errors import AtlasError
from displacementatlas.io.persisted_store import PersistedStore
from displacementatlas.models.cache import CacheHit, CacheTier, PartialData, Scope
from displacementatlas.utils.date_utils import now_ms
from displacementatlas.utils.logging_utils import get_scope_logger

logger = logging.getLogger(__name__)


@dataclass
class CacheSource:
    """How the cache reaches one data source.

    Attributes:
        name: Source name; must match ``Scope.source``.
        ttl_seconds: Lifetime of a persisted entry.
        fetch: Live fetch for a scope. May return PartialData.
        load_static: Static snapshot loader; returns None on a miss.
        decode: Turns persisted JSON back into domain records.
        persist_empty: Whether an empty live result is written to the
            persisted store.
    """

    name: str
    ttl_seconds: float
    fetch: Callable[[Scope], Any]
    load_static: Optional[Callable[[Scope], Optional[Any]]] = None
    decode: Optional[Callable[[Any], Any]] = None
    persist_empty: bool = True


@dataclass
class _MemoryEntry:
    data: Any
    stored_at_ms: int


def _is_empty(data: Any) -> bool:
    if data is None:
        return True
    try:
        return len(data) == 0
    except TypeError:
        return False


class TieredCache:
    """One cache per process, shared by every service.

    Args:
        store: Persisted tier; None disables it.
        serve_stale_on_error: Serve an expired persisted entry when the live
            fetch fails.
        clock_ms: Epoch-milliseconds source; tests substitute a fake clock.
    """

    def __init__(
        self,
        store: Optional[PersistedStore] = None,
        serve_stale_on_error: bool = True,
        clock_ms: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.serve_stale_on_error = serve_stale_on_error
        self._clock_ms = clock_ms
        self._sources: Dict[str, CacheSource] = {}
        self._memory: Dict[str, _MemoryEntry] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: AtlasConfig) -> "TieredCache":
        """Build a cache whose persisted tier lives in ``config.cache_dir``."""
        store = None
        if config.cache_dir:
            store = PersistedStore(config.cache_dir, prefix=config.cache_key_prefix)
        return cls(store=store, serve_stale_on_error=config.serve_stale_on_error)

    # ── Sources ──────────────────────────────────────────────────────────────

    def register_source(self, source: CacheSource) -> None:
        if source.name in self._sources:
            logger.debug("Replacing cache source %s", source.name)
        self._sources[source.name] = source

    def source(self, name: str) -> CacheSource:
        try:
            return self._sources[name]
        except KeyError:
            raise KeyError(f"no cache source registered for {name!r}") from None

    @property
    def source_names(self) -> List[str]:
        return sorted(self._sources)

    # ── Lookup ───────────────────────────────────────────────────────────────

    def lookup(self, scope: Scope) -> CacheHit:
        """Resolve a scope through the tiers.

        Returns:
            CacheHit naming the tier that served the data.

        Raises:
            KeyError: If no source is registered for ``scope.source``.
            AtlasError: If the live fetch fails and no stale entry is kept.
        """
        source = self.source(scope.source)
        key = scope.key()
        log = get_scope_logger(__name__, scope)

        with self._lock:
            cached = self._memory.get(key)
        if cached is not None:
            log.debug("memory hit")
            return CacheHit(scope, cached.data, CacheTier.MEMORY, fetched_at_ms=cached.stored_at_ms)

        static = self._load_static(source, scope, log)
        if static is not None:
            log.debug("static snapshot hit")
            stored_at = self._remember(key, static)
            return CacheHit(scope, static, CacheTier.STATIC, fetched_at_ms=stored_at)

        stale = None
        if self.store is not None:
            entry = self.store.read(key)
            if entry is not None:
                if self.store.is_fresh(entry, source.ttl_seconds):
                    data = self._decode(source, key, entry.data, log)
                    if data is not None:
                        log.debug("persisted hit (age %.0fs)", entry.age_ms(self._clock_ms()) / 1000)
                        self._remember(key, data)
                        return CacheHit(scope, data, CacheTier.PERSISTED, fetched_at_ms=entry.timestamp)
                elif self.serve_stale_on_error:
                    stale = entry
                else:
                    log.debug("persisted entry expired; evicting")
                    self.store.delete(key)

        log.info("fetching live")
        try:
            result = source.fetch(scope)
        except AtlasError as exc:
            if stale is None:
                raise
            data = self._decode(source, key, stale.data, log)
            if data is None:
                raise
            log.warning("live fetch failed (%s); serving stale entry from %d", exc, stale.timestamp)
            return CacheHit(scope, data, CacheTier.STALE, stale=True, fetched_at_ms=stale.timestamp)

        if isinstance(result, PartialData):
            log.warning("live fetch incomplete (%s); not caching", result.reason or "no reason given")
            return CacheHit(scope, result.data, CacheTier.LIVE, partial=True, fetched_at_ms=self._clock_ms())

        stored_at = self._remember(key, result)
        if self.store is not None:
            if source.persist_empty or not _is_empty(result):
                self._persist(key, result, log)
            elif stale is not None:
                self.store.delete(key)
        return CacheHit(scope, result, CacheTier.LIVE, fetched_at_ms=stored_at)

    def get(self, scope: Scope) -> Any:
        """Data for a scope; see lookup()."""
        return self.lookup(scope).data

    def peek(self, scope: Scope) -> Optional[Any]:
        """Memory-tier data for a scope without touching any other tier."""
        with self._lock:
            cached = self._memory.get(scope.key())
        return cached.data if cached is not None else None

    # ── Invalidation ─────────────────────────────────────────────────────────

    def invalidate(self, scope: Scope) -> None:
        """Drop one scope from the memory and persisted tiers."""
        key = scope.key()
        with self._lock:
            self._memory.pop(key, None)
        if self.store is not None:
            self.store.delete(key)

    def clear_memory(self, source: Optional[str] = None) -> int:
        """Empty the memory tier (for one source, or all); returns the count."""
        with self._lock:
            keys = [k for k in self._memory if source is None or k.startswith(f"{source}_")]
            for key in keys:
                del self._memory[key]
        return len(keys)

    def clear_persisted(self, source: Optional[str] = None) -> int:
        """Delete persisted entries (for one source, or all); returns the count."""
        if self.store is None:
            return 0
        removed = 0
        for key in self.persisted_keys(source):
            removed += int(self.store.delete(key))
        return removed

    def memory_keys(self, source: Optional[str] = None) -> List[str]:
        with self._lock:
            keys = list(self._memory)
        return sorted(k for k in keys if source is None or k.startswith(f"{source}_"))

    def persisted_keys(self, source: Optional[str] = None) -> List[str]:
        if self.store is None:
            return []
        return [k for k in self.store.keys() if source is None or k.startswith(f"{source}_")]

    # ── Internals ────────────────────────────────────────────────────────────

    def _remember(self, key: str, data: Any) -> int:
        stored_at = self._clock_ms()
        with self._lock:
            self._memory[key] = _MemoryEntry(data=data, stored_at_ms=stored_at)
        return stored_at

    def _load_static(self, source: CacheSource, scope: Scope, log: logging.LoggerAdapter) -> Optional[Any]:
        if source.load_static is None:
            return None
        try:
            return source.load_static(scope)
        except (KeyError, TypeError, ValueError) as exc:
            log.warning("static snapshot unusable: %s", exc)
            return None

    def _decode(self, source: CacheSource, key: str, raw: Any, log: logging.LoggerAdapter) -> Optional[Any]:
        if source.decode is None:
            return raw
        try:
            return source.decode(raw)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            log.warning("persisted entry does not decode (%s); evicting", exc)
            if self.store is not None:
                self.store.delete(key)
            return None

    def _persist(self, key: str, data: Any, log: logging.LoggerAdapter) -> None:
        try:
            self.store.write(key, data)
        except (OSError, TypeError, ValueError) as exc:
            log.warning("could not write persisted entry: %s", exc)
