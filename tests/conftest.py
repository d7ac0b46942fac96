"""Shared pytest fixtures for Displacement Atlas tests.

Conventions:
- Fixture data lives in tests/fixtures/ as static JSON files shaped like the
  real upstream responses
- HTTP is mocked at the requests.Session level; clients receive a MagicMock
  session, so no real external HTTP calls are made in any test
- Time-dependent code gets a FakeClock instead of the wall clock
"""

from __future__ import annotations

import json
import shutil
from pathlib import Path
from typing import Any, Dict
from unittest.mock import MagicMock

import pytest

_FIXTURES_DIR = Path(__file__).parent / "fixtures"


def _load_fixture(name: str) -> Any:
    with open(_FIXTURES_DIR / name, encoding="utf-8") as f:
        return json.load(f)


# ── Raw fixture data loaders ─────────────────────────────────────────────────────

@pytest.fixture(scope="session")
def unhcr_page1() -> Dict[str, Any]:
    """UNHCR population page 1 of 2: SYR->TUR, BRA->USA, a self-flow and a zero flow."""
    return _load_fixture("unhcr_population_page1.json")


@pytest.fixture(scope="session")
def unhcr_page2() -> Dict[str, Any]:
    """UNHCR population page 2 of 2: AFG->PAK."""
    return _load_fixture("unhcr_population_page2.json")


@pytest.fixture(scope="session")
def unrwa_body() -> Dict[str, Any]:
    """UNRWA response: two JOR rows, LBN, SYR, a PSE row and a row without coa_iso."""
    return _load_fixture("unrwa_population.json")


@pytest.fixture(scope="session")
def iom_country_list_body() -> Dict[str, Any]:
    return _load_fixture("iom_country_list.json")


@pytest.fixture(scope="session")
def iom_nigeria_body() -> Dict[str, Any]:
    """DTM admin-0 envelope for Nigeria.

    2022: Countrywide monitoring 500000 (Jan) and 600000 (Jun), Round 5 900000 (Dec)
    2021: one zero-valued point only
    2023: Round 6 2100000 (Feb) and 2300000 (Aug)
    """
    return _load_fixture("iom_nigeria_admin0.json")


@pytest.fixture(scope="session")
def acled_body() -> Dict[str, Any]:
    """ACLED read response: six Syria 2023 events, 18 fatalities in total."""
    return _load_fixture("acled_syria_2023.json")


# ── HTTP mocking ─────────────────────────────────────────────────────────────────

def make_response(status_code: int = 200, payload: Any = None, text: str = "") -> MagicMock:
    """A requests.Response stand-in."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.reason = "OK" if status_code < 400 else "Error"
    if isinstance(payload, Exception):
        resp.json.side_effect = payload
        resp.text = text
    else:
        resp.json.return_value = payload
        resp.text = text or json.dumps(payload)
    return resp


@pytest.fixture
def response_factory():
    """Factory fixture building mock responses: response_factory(status, payload)."""
    return make_response


@pytest.fixture
def mock_session():
    """MagicMock standing in for requests.Session; set .get / .post per test."""
    return MagicMock()


# ── Configuration and time ───────────────────────────────────────────────────────

@pytest.fixture
def atlas_config(tmp_path):
    """AtlasConfig isolated from the environment and the working directory.

    Delays are zeroed, page sizes are small and credentials are explicit.
    """
    from config.settings import AtlasConfig

    return AtlasConfig(
        unhcr_page_limit=1000,
        unhcr_max_workers=4,
        iom_country_delay=0.0,
        acled_page_size=5000,
        acled_page_delay=0.0,
        acled_rate_limit_backoff=5.0,
        acled_username="analyst@example.org",
        acled_password="secret",
        acled_access_token=None,
        acled_refresh_token=None,
        snapshot_root=str(tmp_path / "snapshots"),
        cache_dir=str(tmp_path / "cache"),
    )


class FakeClock:
    """Manually advanced clock exposing seconds and epoch milliseconds."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def ms(self) -> int:
        return int(self.now * 1000)

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


# ── Shared domain objects ────────────────────────────────────────────────────────

@pytest.fixture(scope="session")
def resolver():
    """The packaged CountryResolver."""
    from displacementatlas.utils.country_resolver import get_default_resolver

    return get_default_resolver()


@pytest.fixture
def make_flow():
    """Factory for MigrationFlow with total derived from refugees + asylum seekers."""
    from displacementatlas.models.flows import MigrationFlow

    def _make(origin: str, asylum: str, refugees: int = 0, asylum_seekers: int = 0,
              year: int = 2023) -> MigrationFlow:
        return MigrationFlow(
            origin_iso=origin,
            origin_name=origin,
            asylum_iso=asylum,
            asylum_name=asylum,
            refugees=refugees,
            asylum_seekers=asylum_seekers,
            total_displaced=refugees + asylum_seekers,
            year=year,
        )

    return _make


# ── Service-level fakes ──────────────────────────────────────────────────────────

@pytest.fixture
def fake_clients(unhcr_page1, unhcr_page2, unrwa_body, iom_nigeria_body, acled_body):
    """Source clients replaced by spec'd MagicMocks returning the fixture rows.

    UNHCR serves pages 1+2 for every view, UNRWA the fixture body, IOM
    Nigeria only, and ACLED the six Syria 2023 events.
    """
    from displacementatlas.clients.acled_client import ACLEDClient, AcledFetchResult
    from displacementatlas.clients.iom_client import IOMClient
    from displacementatlas.clients.unhcr_client import UNHCRClient, UNRWAClient

    unhcr_items = unhcr_page1["items"] + unhcr_page2["items"]

    unhcr = MagicMock(spec=UNHCRClient)
    unhcr.fetch_global.return_value = unhcr_items
    unhcr.fetch_incoming.return_value = []
    unhcr.fetch_outgoing.return_value = []

    unrwa = MagicMock(spec=UNRWAClient)
    unrwa.fetch_year.return_value = unrwa_body["items"]

    iom = MagicMock(spec=IOMClient)
    iom.fetch_all.return_value = {"NGA": iom_nigeria_body["result"]}
    iom.fetch_country.side_effect = (
        lambda iso3: iom_nigeria_body["result"] if iso3.upper() == "NGA" else []
    )

    acled = MagicMock(spec=ACLEDClient)
    acled.fetch_events.side_effect = (
        lambda iso3, year: AcledFetchResult(iso3=iso3, year=year, rows=list(acled_body["data"]), pages=1)
    )

    return {"unhcr": unhcr, "unrwa": unrwa, "iom": iom, "acled": acled}


@pytest.fixture
def tiered_cache(atlas_config, fake_clock):
    """TieredCache persisting under tmp_path, driven by the fake clock."""
    from displacementatlas.cache.tiered_cache import TieredCache
    from displacementatlas.io.persisted_store import PersistedStore

    store = PersistedStore(atlas_config.cache_dir, prefix=atlas_config.cache_key_prefix,
                           clock_ms=fake_clock.ms)
    return TieredCache(store=store, clock_ms=fake_clock.ms)


@pytest.fixture
def published_snapshots(atlas_config) -> Path:
    """Copy the published snapshot files into the configured snapshot root.

    tests/fixtures/snapshots holds iom-cache.json with camelCase country
    records and conflict-data/SYR.json with raw ACLED rows for 2022, the
    shapes the offline fetch scripts publish.
    """
    root = Path(atlas_config.snapshot_root)
    shutil.copytree(_FIXTURES_DIR / "snapshots", root, dirs_exist_ok=True)
    return root
