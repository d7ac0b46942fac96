"""Country identity data models for Displacement Atlas."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class CountryCoordinate:
    """One row of the canonical country registry.

    Includes special non-ISO codes (stateless, unknown, various) which carry
    a capital of "N/A" and sit at 0,0.
    """

    iso3: str
    name: str
    capital: str
    lat: float
    lng: float

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "CountryCoordinate":
        return cls(
            iso3=str(raw["iso3"]).upper(),
            name=str(raw.get("name", "")),
            capital=str(raw.get("capital", "")),
            lat=float(raw.get("lat", 0.0)),
            lng=float(raw.get("lng", 0.0)),
        )
