"""Conflict event summarization for Displacement Atlas.

Derives a ConflictSummary from one ConflictEvent set. Summaries are cheap
and never persisted; recompute them whenever the event set changes.
"""

from __future__ import annotations

from typing import Dict, Iterable, List

from config.defaults import CONFLICT_TOP_EVENTS, CONFLICT_TOP_LOCATIONS
from displacementatlas.models.conflict import (
    ConflictEvent,
    ConflictSummary,
    LocationCount,
    MonthlyTimelineEntry,
)
from displacementatlas.utils.date_utils import month_key


def location_key(event: ConflictEvent) -> str:
    """Admin-1 region, falling back to the point location name."""
    return event.admin1 or event.location or "Unknown"


def summarize(
    events: Iterable[ConflictEvent],
    top_locations: int = CONFLICT_TOP_LOCATIONS,
    top_events: int = CONFLICT_TOP_EVENTS,
) -> ConflictSummary:
    """Summarize a conflict event set.

    Ties in the top-location and deadliest-event rankings are broken by
    original fetch order (Python's sort is stable).

    Args:
        events: Events in source order.
        top_locations: Number of locations to rank.
        top_events: Number of deadliest events to keep.

    Returns:
        ConflictSummary with a month timeline sorted ascending.
    """
    events = list(events)
    type_counts: Dict[str, int] = {}
    location_counts: Dict[str, int] = {}
    timeline: Dict[str, MonthlyTimelineEntry] = {}
    total_fatalities = 0

    for event in events:
        event_type = event.event_type or "Unknown"
        type_counts[event_type] = type_counts.get(event_type, 0) + 1

        loc = location_key(event)
        location_counts[loc] = location_counts.get(loc, 0) + 1

        total_fatalities += event.fatalities

        month = month_key(event.date)
        entry = timeline.get(month)
        if entry is None:
            entry = timeline[month] = MonthlyTimelineEntry(month=month)
        entry.events += 1
        entry.fatalities += event.fatalities

    # dicts keep first-seen order, so a stable sort keeps ties in fetch order
    ranked_locations = sorted(
        location_counts.items(), key=lambda kv: kv[1], reverse=True
    )
    deadliest: List[ConflictEvent] = sorted(events, key=lambda e: e.fatalities, reverse=True)

    return ConflictSummary(
        total_events=len(events),
        total_fatalities=total_fatalities,
        event_type_counts=type_counts,
        top_locations=[LocationCount(location=k, count=v) for k, v in ranked_locations[:top_locations]],
        most_deadly_events=deadliest[:top_events],
        monthly_timeline=[timeline[m] for m in sorted(timeline)],
    )
