"""Integration tests for displacementatlas.atlas.

Covers:
- DisplacementAtlas wiring: one cache shared by every service
- country_dashboard: every section OK, independent section degradation
- LatestRequestGuard and fetch_latest
- diagnostics() and lifecycle

Source clients are MagicMock fakes; no real network calls are made.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from displacementatlas import DisplacementAtlas, LatestRequestGuard
from displacementatlas.cache.diagnostics import CacheDiagnostics
from displacementatlas.errors import AuthenticationError, SourceFetchError
from displacementatlas.models.results import ServiceStatus


@pytest.fixture
def atlas(atlas_config, tiered_cache, fake_clients):
    atlas = DisplacementAtlas(
        atlas_config,
        cache=tiered_cache,
        unhcr_client=fake_clients["unhcr"],
        unrwa_client=fake_clients["unrwa"],
        iom_client=fake_clients["iom"],
        acled_client=fake_clients["acled"],
    )
    yield atlas
    atlas.close()


# ── Wiring ────────────────────────────────────────────────────────────────────────

class TestWiring:
    def test_services_share_one_cache(self, atlas, tiered_cache):
        assert atlas.flows.cache is atlas.idp.cache is atlas.conflict.cache is tiered_cache
        assert tiered_cache.source_names == ["acled", "iom", "unhcr", "unrwa"]

    def test_snapshot_reader_from_config(self, atlas, atlas_config):
        assert str(atlas.snapshots.root) == atlas_config.snapshot_root

    def test_delegating_operations(self, atlas):
        assert len(atlas.global_flows(2023).data) == 6
        assert atlas.idp_points_data(2022).data["NGA"].total_idps == 600000
        assert atlas.country_idp("NGA").data.has_data is True
        assert len(atlas.conflict_events("SYR", 2023).data) == 6
        assert atlas.conflict_summary("SYR", 2023).data.total_fatalities == 18
        assert atlas.incoming_flows("DEU", 2023).status == ServiceStatus.OK
        assert atlas.outgoing_flows("SYR", 2023).status == ServiceStatus.OK


# ── Dashboard ─────────────────────────────────────────────────────────────────────

class TestCountryDashboard:
    def test_all_sections_ok(self, atlas):
        dashboard = atlas.country_dashboard("syr", 2023)

        assert dashboard.iso3 == "SYR"
        assert dashboard.name == "Syria"
        assert dashboard.status == ServiceStatus.OK
        assert [s.name for s in dashboard.sections] == ["incoming", "outgoing", "idp", "conflict"]
        assert dashboard.conflict.data.total_events == 6
        assert dashboard.idp.data is None
        assert dashboard.warnings == []

    def test_conflict_failure_leaves_other_sections(self, atlas, fake_clients):
        """An ACLED auth failure fails only the conflict section."""
        fake_clients["acled"].fetch_events.side_effect = AuthenticationError("acled", "rejected", 401)

        dashboard = atlas.country_dashboard("NGA", 2023)

        assert dashboard.status == ServiceStatus.PARTIAL
        assert dashboard.conflict.status == ServiceStatus.FAILED
        assert dashboard.idp.status == ServiceStatus.OK
        assert dashboard.idp.data.total_idps == 2300000
        assert dashboard.incoming.status == ServiceStatus.OK
        assert any(w.startswith("[conflict]") for w in dashboard.warnings)

    def test_unrwa_failure_marks_flow_sections_partial(self, atlas, fake_clients):
        fake_clients["unrwa"].fetch_year.side_effect = SourceFetchError("unrwa", "down")

        dashboard = atlas.country_dashboard("JOR", 2023)

        assert dashboard.incoming.status == ServiceStatus.PARTIAL
        assert dashboard.outgoing.status == ServiceStatus.OK
        assert dashboard.status == ServiceStatus.PARTIAL

    def test_every_section_failing(self, atlas, fake_clients):
        down = SourceFetchError("unhcr", "down")
        fake_clients["unhcr"].fetch_incoming.side_effect = down
        fake_clients["unhcr"].fetch_outgoing.side_effect = down
        fake_clients["iom"].fetch_country.side_effect = SourceFetchError("iom", "country list failed")
        fake_clients["acled"].fetch_events.side_effect = SourceFetchError("acled", "down")

        dashboard = atlas.country_dashboard("SYR", 2023)

        assert dashboard.status == ServiceStatus.FAILED
        assert all(s.retryable for s in dashboard.sections)


# ── Latest-request handling ───────────────────────────────────────────────────────

class TestLatestRequestGuard:
    def test_older_ticket_is_discarded(self):
        guard = LatestRequestGuard()
        first = guard.begin("country")
        second = guard.begin("country")
        applied = []

        assert guard.commit("country", first, lambda: applied.append("first")) is False
        assert guard.commit("country", second, lambda: applied.append("second")) is True
        assert applied == ["second"]

    def test_views_are_independent(self):
        guard = LatestRequestGuard()
        flows = guard.begin("flows")
        guard.begin("conflict")
        assert guard.is_current("flows", flows) is True


class TestFetchLatest:
    def test_current_result_returned(self, atlas):
        result = atlas.fetch_latest("flows", atlas.global_flows, 2023)
        assert result is not None
        assert result.status == ServiceStatus.OK

    def test_superseded_result_dropped(self, atlas):
        """A newer request for the same view starting mid-flight wins."""
        def slow_operation(year):
            atlas.guard.begin("flows")
            return atlas.global_flows(year)

        assert atlas.fetch_latest("flows", slow_operation, 2023) is None


# ── Diagnostics and lifecycle ─────────────────────────────────────────────────────

class TestDiagnosticsAndLifecycle:
    def test_diagnostics_report(self, atlas):
        atlas.conflict_events("SYR", 2023)

        diagnostics = atlas.diagnostics()

        assert isinstance(diagnostics, CacheDiagnostics)
        assert diagnostics.entry_counts()["acled"] == {"memory": 1, "persisted": 1}
        assert diagnostics.clear("acled") == {"memory": 1, "persisted": 1}

    def test_context_manager_closes_clients(self, atlas_config, tiered_cache, fake_clients):
        with DisplacementAtlas(atlas_config, cache=tiered_cache, unhcr_client=fake_clients["unhcr"],
                               unrwa_client=fake_clients["unrwa"], iom_client=fake_clients["iom"],
                               acled_client=fake_clients["acled"]):
            pass

        for client in fake_clients.values():
            client.close.assert_called_once()

    def test_configure_logs_opt_in(self, atlas_config, tiered_cache, fake_clients, monkeypatch):
        """configure_logs=True applies the logging config from AtlasConfig; the default leaves it alone."""
        configure = MagicMock()
        monkeypatch.setattr("displacementatlas.atlas.configure_logging", configure)
        atlas_config.log_level = "DEBUG"
        atlas_config.log_file = "/var/log/atlas.log"
        clients = dict(unhcr_client=fake_clients["unhcr"], unrwa_client=fake_clients["unrwa"],
                       iom_client=fake_clients["iom"], acled_client=fake_clients["acled"])

        DisplacementAtlas(atlas_config, cache=tiered_cache, **clients)
        configure.assert_not_called()

        DisplacementAtlas(atlas_config, cache=tiered_cache, configure_logs=True, **clients)
        configure.assert_called_once_with(log_level="DEBUG", log_file="/var/log/atlas.log")
