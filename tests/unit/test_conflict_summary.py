"""Unit tests for displacementatlas.analysis.conflict_summary."""

from __future__ import annotations

import pytest

from displacementatlas.analysis.conflict_summary import location_key, summarize
from displacementatlas.analysis.normalizer import normalize_acled_events
from displacementatlas.models.conflict import ConflictEvent


@pytest.fixture
def syria_events(acled_body):
    return normalize_acled_events(acled_body["data"])


class TestSummarize:
    def test_totals(self, syria_events):
        summary = summarize(syria_events)
        assert summary.total_events == 6
        assert summary.total_fatalities == 18

    def test_event_type_counts(self, syria_events):
        summary = summarize(syria_events)
        assert summary.event_type_counts == {
            "Battles": 3,
            "Explosions/Remote violence": 1,
            "Protests": 1,
            "Strategic developments": 1,
        }

    def test_top_locations_fall_back_to_point_location(self, syria_events):
        """Events without admin1 are counted under their point location; ties keep fetch order."""
        summary = summarize(syria_events)
        assert [(l.location, l.count) for l in summary.top_locations] == [
            ("Idleb", 3), ("As-Sweida", 1), ("Deir-ez-Zor", 1), ("Damascus", 1),
        ]

    def test_most_deadly_ties_in_fetch_order(self, syria_events):
        """SYR1002 and SYR1004 both have 7 fatalities; the earlier fetched one ranks first."""
        summary = summarize(syria_events)
        assert [e.event_id for e in summary.most_deadly_events] == [
            "SYR1002", "SYR1004", "SYR1001", "SYR1003", "SYR1005",
        ]

    def test_monthly_timeline(self, syria_events):
        summary = summarize(syria_events)
        assert [(m.month, m.events, m.fatalities) for m in summary.monthly_timeline] == [
            ("2023-01", 2, 11), ("2023-02", 2, 7), ("2023-03", 2, 0),
        ]

    def test_limits_are_configurable(self, syria_events):
        summary = summarize(syria_events, top_locations=1, top_events=2)
        assert len(summary.top_locations) == 1
        assert len(summary.most_deadly_events) == 2

    def test_undated_events_bucketed_as_unknown(self):
        summary = summarize([ConflictEvent(event_id="X", date="", year=0)])
        assert summary.monthly_timeline[0].month == "Unknown"

    def test_empty(self):
        summary = summarize([])
        assert summary.total_events == 0
        assert summary.top_locations == []
        assert summary.monthly_timeline == []


class TestLocationKey:
    def test_admin1_preferred(self):
        assert location_key(ConflictEvent("1", "2023-01-01", 2023, admin_levels=["Aleppo"],
                                          location="Azaz")) == "Aleppo"

    def test_unknown_when_nothing_set(self):
        assert location_key(ConflictEvent("1", "2023-01-01", 2023)) == "Unknown"
