"""Unit tests for displacementatlas.analysis.normalizer.

Covers:
- parse_count / parse_coordinate: placeholder strings, NaN, invalid input
- normalize_unhcr_items: self-flow and zero-total exclusion, totals, names
- normalize_unrwa_items: per-destination summing, PSE and empty-code rows dropped
- normalize_iom_points: field mapping and year fallback
- normalize_acled_events: actors, admin levels, coordinates, fatalities
"""

from __future__ import annotations

import math

import pytest

from displacementatlas.analysis.normalizer import (
    normalize_acled_event,
    normalize_acled_events,
    normalize_iom_points,
    normalize_unhcr_items,
    normalize_unrwa_items,
    parse_coordinate,
    parse_count,
)


# ── parse_count ───────────────────────────────────────────────────────────────────

class TestParseCount:
    @pytest.mark.parametrize("raw", ["-", "", "   ", None, "n/a", float("nan"), float("inf"), True])
    def test_placeholders_parse_to_zero(self, raw):
        """Placeholder, empty and non-finite values must parse to 0, never NaN."""
        assert parse_count(raw) == 0

    @pytest.mark.parametrize("raw,expected", [(12, 12), (7.9, 7), ("42", 42), (" 15 ", 15),
                                              ("1,200", 1), ("-3", -3)])
    def test_numeric_values(self, raw, expected):
        """Numbers and leading-integer strings are read like parseInt."""
        assert parse_count(raw) == expected


class TestParseCoordinate:
    def test_valid_string(self):
        assert parse_coordinate("35.8127") == pytest.approx(35.8127)

    @pytest.mark.parametrize("raw", ["bad", "", None, "nan"])
    def test_invalid_values_become_zero(self, raw):
        """Invalid and non-finite coordinates must become 0.0."""
        value = parse_coordinate(raw)
        assert value == 0.0
        assert not math.isnan(value)


# ── UNHCR ─────────────────────────────────────────────────────────────────────────

class TestNormalizeUnhcrItems:
    def test_fixture_page(self, unhcr_page1, resolver):
        """Self-flows and zero-total rows are dropped; the rest keep input order."""
        flows = normalize_unhcr_items(unhcr_page1["items"], resolver)
        assert [f.key for f in flows] == [("SYR", "TUR"), ("BRA", "USA")]

    def test_total_is_refugees_plus_asylum_seekers(self, unhcr_page1, resolver):
        flows = normalize_unhcr_items(unhcr_page1["items"], resolver)
        syr_tur = flows[0]
        assert syr_tur.refugees == 3214000
        assert syr_tur.asylum_seekers == 2900
        assert syr_tur.total_displaced == 3216900
        assert syr_tur.year == 2023

    def test_no_self_flow_ever_emitted(self, resolver):
        """Rows whose codes resolve to the same ISO3 must never appear."""
        items = [
            {"coo_iso": "kos", "coa_iso": "XKX", "refugees": 10, "asylum_seekers": 0, "year": 2020},
            {"coo_iso": "SYR", "coa_iso": "syr", "refugees": 10, "asylum_seekers": 0, "year": 2020},
        ]
        assert normalize_unhcr_items(items, resolver) == []

    def test_placeholder_counts_do_not_produce_nan(self, resolver):
        """A dash asylum-seeker count parses to 0 and the flow survives on refugees."""
        items = [{"coo_iso": "AFG", "coa_iso": "IRN", "refugees": "750", "asylum_seekers": "-",
                  "year": "2022", "coo_name": "Afghanistan", "coa_name": "Iran"}]
        [flow] = normalize_unhcr_items(items, resolver)
        assert flow.total_displaced == 750
        assert flow.asylum_seekers == 0
        assert flow.year == 2022

    def test_palestine_names_canonicalised(self, resolver):
        """Palestine name variants resolve to the canonical display name."""
        items = [{"coo_iso": "PSE", "coa_iso": "EGY", "refugees": 5, "asylum_seekers": 0,
                  "coo_name": "West Bank and Gaza", "coa_name": "Egypt", "year": 2023}]
        [flow] = normalize_unhcr_items(items, resolver)
        assert flow.origin_name == "Palestine"


# ── UNRWA ─────────────────────────────────────────────────────────────────────────

class TestNormalizeUnrwaItems:
    def test_duplicate_destinations_summed(self, unrwa_body, resolver):
        """Two JOR rows in one response become one record with the summed total."""
        flows = {f.asylum_iso: f for f in normalize_unrwa_items(unrwa_body["items"], 2023, resolver)}
        assert flows["JOR"].refugees == 2390000
        assert flows["JOR"].total_displaced == 2390000

    def test_origin_rows_and_missing_codes_dropped(self, unrwa_body, resolver):
        """Rows for Palestine itself and rows without coa_iso are skipped."""
        flows = normalize_unrwa_items(unrwa_body["items"], 2023, resolver)
        assert [f.asylum_iso for f in flows] == ["JOR", "LBN", "SYR"]

    def test_canonical_shape(self, unrwa_body, resolver):
        """Every UNRWA flow originates in Palestine and carries zero asylum seekers."""
        for flow in normalize_unrwa_items(unrwa_body["items"], 2023, resolver):
            assert flow.origin_iso == "PSE"
            assert flow.origin_name == "Palestine"
            assert flow.asylum_seekers == 0
            assert flow.year == 2023

    def test_empty_items(self, resolver):
        """An empty response is an empty result, not an error."""
        assert normalize_unrwa_items([], 2023, resolver) == []


# ── IOM ───────────────────────────────────────────────────────────────────────────

class TestNormalizeIomPoints:
    def test_fields_mapped(self, iom_nigeria_body):
        points = normalize_iom_points(iom_nigeria_body["result"])
        first = points[0]
        assert first.operation == "Countrywide monitoring"
        assert first.admin0_pcode == "NGA"
        assert first.num_present_idp_ind == 500000
        assert first.reporting_date == "2022-01-01"
        assert first.year == 2022
        assert first.round_number == 40

    def test_zero_points_kept_for_aggregator(self, iom_nigeria_body):
        """Zero-valued rows survive normalization; aggregation filters them."""
        points = normalize_iom_points(iom_nigeria_body["result"])
        assert len(points) == len(iom_nigeria_body["result"])

    def test_year_falls_back_to_reporting_date(self):
        """Without yearReportingDate the year comes from reportingDate."""
        [point] = normalize_iom_points([{"operation": "Round 1", "admin0Pcode": "som",
                                         "numPresentIdpInd": "1200",
                                         "reportingDate": "2019-05-04T00:00:00"}])
        assert point.year == 2019
        assert point.admin0_pcode == "SOM"
        assert point.num_present_idp_ind == 1200


# ── ACLED ─────────────────────────────────────────────────────────────────────────

class TestNormalizeAcledEvents:
    def test_preserves_source_order(self, acled_body):
        events = normalize_acled_events(acled_body["data"])
        assert [e.event_id for e in events] == [
            "SYR1001", "SYR1002", "SYR1003", "SYR1004", "SYR1005", "SYR1006",
        ]

    def test_actors_and_admin_levels(self, acled_body):
        """Empty actor and trailing admin fields are removed."""
        event = normalize_acled_event(acled_body["data"][0])
        assert event.actors == ["Military Forces of Syria", "HTS"]
        assert event.admin_levels == ["Idleb", "Ariha"]
        assert event.admin1 == "Idleb"

    def test_bad_numbers_degrade(self, acled_body):
        """A dash fatality count and an invalid latitude degrade to zero."""
        events = normalize_acled_events(acled_body["data"])
        assert events[4].fatalities == 0
        assert events[5].lat == 0.0
        assert events[5].lng == 0.0
        assert events[5].admin_levels == []

    def test_missing_event_type_is_unknown(self):
        event = normalize_acled_event({"event_id_cnty": "X1", "event_date": "2020-02-02"})
        assert event.event_type == "Unknown"
        assert event.year == 2020
