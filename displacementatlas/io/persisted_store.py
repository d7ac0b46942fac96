"""Persisted cache tier for Displacement Atlas.

One JSON file per cache key, named ``<prefix><key>.json``, holding the
envelope ``{"data": ..., "timestamp": <epoch ms>}``. An entry is fresh while
``now - timestamp < ttl``; at or beyond the TTL it is stale. Files that do
not parse, or that parse to something other than a valid envelope, are
evicted and reported as absent.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, List, Optional

from config.defaults import CACHE_KEY_PREFIX
from displacementatlas.io.persistence import load_json, remove_file, save_json
from displacementatlas.utils.date_utils import now_ms

logger = logging.getLogger(__name__)

_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9_.-]")


@dataclass
class PersistedEntry:
    """A decoded envelope."""

    key: str
    data: Any
    timestamp: int      # epoch milliseconds

    def age_ms(self, now: int) -> int:
        return now - self.timestamp


class PersistedStore:
    """Directory-backed key/value store with timestamped envelopes.

    Args:
        directory: Directory holding the entry files (created on first write).
        prefix: Prefix applied to every key.
        clock_ms: Epoch-milliseconds source; tests substitute a fake clock.
    """

    def __init__(
        self,
        directory: str | Path,
        prefix: str = CACHE_KEY_PREFIX,
        clock_ms: Callable[[], int] = now_ms,
    ) -> None:
        self.directory = Path(directory)
        self.prefix = prefix
        self._clock_ms = clock_ms

    def path_for(self, key: str) -> Path:
        return self.directory / f"{self.prefix}{_UNSAFE_CHARS_RE.sub('-', key)}.json"

    def read(self, key: str) -> Optional[PersistedEntry]:
        """Read an entry regardless of age.

        Returns:
            The entry, or None when absent or corrupt (corrupt files are evicted).
        """
        path = self.path_for(key)
        if not path.exists():
            return None
        raw = load_json(path)
        if (
            not isinstance(raw, dict)
            or "data" not in raw
            or not isinstance(raw.get("timestamp"), (int, float))
            or isinstance(raw.get("timestamp"), bool)
        ):
            logger.warning("Evicting corrupt cache entry %s", path.name)
            remove_file(path)
            return None
        return PersistedEntry(key=key, data=raw["data"], timestamp=int(raw["timestamp"]))

    def is_fresh(self, entry: PersistedEntry, ttl_seconds: float) -> bool:
        """True while the entry is younger than the TTL (strictly)."""
        return entry.age_ms(self._clock_ms()) < ttl_seconds * 1000

    def get(self, key: str, ttl_seconds: float) -> Optional[Any]:
        """Return fresh data for a key; stale entries are evicted."""
        entry = self.read(key)
        if entry is None:
            return None
        if not self.is_fresh(entry, ttl_seconds):
            logger.debug("Evicting stale cache entry %s", key)
            self.delete(key)
            return None
        return entry.data

    def write(self, key: str, data: Any) -> PersistedEntry:
        """Store data under a key, stamped with the current time."""
        entry = PersistedEntry(key=key, data=data, timestamp=self._clock_ms())
        save_json({"data": data, "timestamp": entry.timestamp}, self.path_for(key), indent=None)
        return entry

    def delete(self, key: str) -> bool:
        return remove_file(self.path_for(key))

    def keys(self) -> List[str]:
        """Keys currently stored (as file names, prefix removed), sorted."""
        if not self.directory.exists():
            return []
        return sorted(
            p.stem[len(self.prefix):]
            for p in self.directory.glob(f"{self.prefix}*.json")
        )

    def clear(self) -> int:
        """Delete every entry with this store's prefix; returns the count."""
        removed = 0
        for key in self.keys():
            removed += int(self.delete(key))
        return removed
