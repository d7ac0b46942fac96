"""Cache data models for Displacement Atlas.

Defines Scope (the fetchable/cacheable unit), CacheTier, CacheHit (what a
tiered lookup returns) and PartialData (a live result that must not be cached).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


class CacheTier:
    """Tier names reported on CacheHit.tier, in lookup order."""

    MEMORY = "memory"
    STATIC = "static"
    PERSISTED = "persisted"
    LIVE = "live"
    STALE = "stale"


@dataclass(frozen=True)
class Scope:
    """The (country-or-global, year) key identifying one cacheable unit.

    ``view`` distinguishes several shapes fetched from one source, e.g. the
    UNHCR ``incoming`` and ``outgoing`` views of the same country-year.
    """

    source: str
    iso3: Optional[str] = None
    year: Optional[int] = None
    view: Optional[str] = None

    @property
    def is_global(self) -> bool:
        return self.iso3 is None

    def key(self) -> str:
        """Cache key ``<source>[_<view>]_<iso3|global>_<year|all>``."""
        source = f"{self.source}_{self.view}" if self.view else self.source
        iso3 = self.iso3 or "global"
        year = str(self.year) if self.year is not None else "all"
        return f"{source}_{iso3}_{year}"

    def __str__(self) -> str:
        return self.key()


@dataclass
class CacheHit:
    """Result of a tiered lookup: the records plus where they came from."""

    scope: Scope
    data: Any
    tier: str
    stale: bool = False
    partial: bool = False
    fetched_at_ms: Optional[int] = None


@dataclass
class PartialData:
    """Returned by a live fetch that stopped early but kept what it had.

    The tiered cache hands the data to the caller and writes it to no tier,
    so the next lookup tries the live source again.
    """

    data: Any
    reason: str = ""
