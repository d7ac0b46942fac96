"""Displacement flow data models for Displacement Atlas.

MigrationFlow is the one canonical flow shape. Every field is always present;
sources that do not track a field (UNRWA has no asylum-seeker figure) carry 0.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple


@dataclass
class MigrationFlow:
    """Aggregate displacement from one country to another in one year.

    Invariants: origin_iso != asylum_iso, and total_displaced equals
    refugees + asylum_seekers and is > 0 when produced by the normalizer.
    """

    origin_iso: str
    origin_name: str
    asylum_iso: str
    asylum_name: str
    refugees: int = 0
    asylum_seekers: int = 0
    total_displaced: int = 0
    year: int = 0

    @property
    def key(self) -> Tuple[str, str]:
        """Merge key: (origin_iso, asylum_iso)."""
        return (self.origin_iso, self.asylum_iso)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "MigrationFlow":
        return cls(
            origin_iso=raw["origin_iso"],
            origin_name=raw.get("origin_name", ""),
            asylum_iso=raw["asylum_iso"],
            asylum_name=raw.get("asylum_name", ""),
            refugees=int(raw.get("refugees", 0)),
            asylum_seekers=int(raw.get("asylum_seekers", 0)),
            total_displaced=int(raw.get("total_displaced", 0)),
            year=int(raw.get("year", 0)),
        )


@dataclass
class CountryAggregate:
    """Per-country roll-up of flows grouped by origin or by asylum country."""

    iso: str
    name: str
    total: int = 0
    count: int = 0
