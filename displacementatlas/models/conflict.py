"""Conflict event data models for Displacement Atlas."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class ConflictEvent:
    """One discrete recorded conflict incident (ACLED row, normalized)."""

    event_id: str
    date: str                    # ISO date string (YYYY-MM-DD)
    year: int
    event_type: str = "Unknown"
    sub_event_type: str = ""
    actors: List[str] = field(default_factory=list)
    admin_levels: List[str] = field(default_factory=list)   # admin1, admin2, admin3
    location: str = ""
    lat: float = 0.0
    lng: float = 0.0
    fatalities: int = 0
    civilian_targeting: str = ""

    @property
    def admin1(self) -> str:
        return self.admin_levels[0] if self.admin_levels else ""

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ConflictEvent":
        return cls(
            event_id=raw.get("event_id", ""),
            date=raw.get("date", ""),
            year=int(raw.get("year", 0)),
            event_type=raw.get("event_type", "Unknown"),
            sub_event_type=raw.get("sub_event_type", ""),
            actors=list(raw.get("actors", [])),
            admin_levels=list(raw.get("admin_levels", [])),
            location=raw.get("location", ""),
            lat=float(raw.get("lat", 0.0)),
            lng=float(raw.get("lng", 0.0)),
            fatalities=int(raw.get("fatalities", 0)),
            civilian_targeting=raw.get("civilian_targeting", ""),
        )

    def to_acled_row(self) -> Dict[str, Any]:
        """The event in ACLED read-API field names, as conflict snapshots store it."""
        actors = self.actors + [""] * (2 - len(self.actors))
        admin = self.admin_levels + [""] * (3 - len(self.admin_levels))
        return {
            "event_id_cnty": self.event_id,
            "event_date": self.date,
            "year": self.year,
            "event_type": self.event_type,
            "sub_event_type": self.sub_event_type,
            "actor1": actors[0],
            "actor2": actors[1],
            "admin1": admin[0],
            "admin2": admin[1],
            "admin3": admin[2],
            "location": self.location,
            "latitude": self.lat,
            "longitude": self.lng,
            "fatalities": self.fatalities,
            "civilian_targeting": self.civilian_targeting,
        }


@dataclass
class LocationCount:
    location: str
    count: int


@dataclass
class MonthlyTimelineEntry:
    month: str       # YYYY-MM
    events: int = 0
    fatalities: int = 0


@dataclass
class ConflictSummary:
    """Derived, non-persisted aggregate over one ConflictEvent set."""

    total_events: int = 0
    total_fatalities: int = 0
    event_type_counts: Dict[str, int] = field(default_factory=dict)
    top_locations: List[LocationCount] = field(default_factory=list)
    most_deadly_events: List[ConflictEvent] = field(default_factory=list)
    monthly_timeline: List[MonthlyTimelineEntry] = field(default_factory=list)
