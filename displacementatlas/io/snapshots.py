"""Static snapshot files for Displacement Atlas.

Snapshots are produced offline and are read-only at runtime. Layout under
the snapshot root::

    conflict-data/<ISO3>.json   {iso3, yearlyData: {<year>: [raw ACLED row]}, lastFetched, version}
    conflict-data/metadata.json {version, lastFetched, totalEvents, countriesCount,
                                 years, availableCountries, compressionRatio}
    iom-cache.json              {idpData: {<iso3>: camelCase country record}, lastFetched, version}
    unhcr-cache.json            {lastFetched, years, data: {<year>: [raw item]}}
    unrwa-cache.json            (same shape as unhcr-cache.json)
    country-coordinates.json    [coordinate, ...] sorted by ISO3

A missing or unreadable file is a miss, never an error. The writers are used
by offline tooling and tests; every write is atomic.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from config.defaults import SNAPSHOT_VERSION
from displacementatlas.io.persistence import load_json, save_json, to_jsonable
from displacementatlas.models.conflict import ConflictEvent
from displacementatlas.models.countries import CountryCoordinate
from displacementatlas.models.idp import IomCountryIdpData
from displacementatlas.utils.date_utils import utc_now_iso

logger = logging.getLogger(__name__)

CONFLICT_DIR = "conflict-data"
CONFLICT_METADATA_FILE = "metadata.json"
IOM_SNAPSHOT_FILE = "iom-cache.json"
COORDINATE_TABLE_FILE = "country-coordinates.json"
POPULATION_SNAPSHOT_FILES = {
    "unhcr": "unhcr-cache.json",
    "unrwa": "unrwa-cache.json",
}


def _year_keys(mapping: Any) -> List[int]:
    years: List[int] = []
    if isinstance(mapping, dict):
        for key in mapping:
            try:
                years.append(int(key))
            except (TypeError, ValueError):
                continue
    return sorted(years)


class SnapshotReader:
    """Read access to the static snapshot tree.

    Parsed documents are kept for the life of the reader since the files do
    not change at runtime; call ``reload()`` after regenerating them.

    Args:
        root: Snapshot root directory. None disables the static tier.
    """

    def __init__(self, root: Optional[str | Path]) -> None:
        self.root = Path(root) if root else None
        self._documents: Dict[str, Any] = {}
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self.root is not None and self.root.is_dir()

    def path(self, relative: str) -> Optional[Path]:
        return self.root / relative if self.root is not None else None

    def exists(self, relative: str) -> bool:
        path = self.path(relative)
        return path is not None and path.is_file()

    def reload(self) -> None:
        """Forget every parsed document."""
        with self._lock:
            self._documents.clear()

    def _load(self, relative: str) -> Optional[Any]:
        with self._lock:
            if relative in self._documents:
                return self._documents[relative]
        path = self.path(relative)
        if path is None or not path.is_file():
            return None
        document = load_json(path)
        if document is None:
            logger.warning("Snapshot %s is unreadable; treating it as absent", relative)
        with self._lock:
            self._documents[relative] = document
        return document

    # ── Conflict events ──────────────────────────────────────────────────────

    def conflict_document(self, iso3: str) -> Optional[Dict[str, Any]]:
        document = self._load(f"{CONFLICT_DIR}/{iso3.upper()}.json")
        return document if isinstance(document, dict) else None

    def conflict_events(self, iso3: str, year: int) -> Optional[List[Dict[str, Any]]]:
        """Raw event dicts for one country-year.

        Returns:
            The events, or None when the file or year is absent or the
            year's list is empty.
        """
        document = self.conflict_document(iso3)
        if document is None:
            return None
        yearly = document.get("yearlyData")
        if not isinstance(yearly, dict):
            return None
        events = yearly.get(str(year))
        if not isinstance(events, list) or not events:
            return None
        return events

    def conflict_metadata(self) -> Optional[Dict[str, Any]]:
        document = self._load(f"{CONFLICT_DIR}/{CONFLICT_METADATA_FILE}")
        return document if isinstance(document, dict) else None

    def conflict_countries(self) -> List[str]:
        """ISO3 codes with a conflict snapshot, sorted.

        Read from the metadata file, or from the directory listing when the
        metadata file is missing.
        """
        metadata = self.conflict_metadata()
        if metadata is not None and isinstance(metadata.get("availableCountries"), list):
            return sorted(str(c).upper() for c in metadata["availableCountries"])
        directory = self.path(CONFLICT_DIR)
        if directory is None or not directory.is_dir():
            return []
        return sorted(
            p.stem.upper()
            for p in directory.glob("*.json")
            if p.name != CONFLICT_METADATA_FILE
        )

    def conflict_years(self, iso3: str) -> List[int]:
        """Years held in one country's conflict snapshot, ascending."""
        document = self.conflict_document(iso3)
        if document is None:
            return []
        return _year_keys(document.get("yearlyData"))

    # ── IOM ──────────────────────────────────────────────────────────────────

    def iom_document(self) -> Optional[Dict[str, Any]]:
        document = self._load(IOM_SNAPSHOT_FILE)
        if not isinstance(document, dict) or not isinstance(document.get("idpData"), dict):
            return None
        return document

    def iom_dataset(self) -> Optional[Dict[str, Dict[str, Any]]]:
        """ISO3 -> raw country record, or None when the snapshot is absent."""
        document = self.iom_document()
        return dict(document["idpData"]) if document is not None else None

    def iom_country(self, iso3: str) -> Optional[Dict[str, Any]]:
        dataset = self.iom_dataset()
        if dataset is None:
            return None
        return dataset.get(iso3.upper())

    # ── UNHCR / UNRWA ────────────────────────────────────────────────────────

    def population_document(self, source: str) -> Optional[Dict[str, Any]]:
        name = POPULATION_SNAPSHOT_FILES.get(source)
        if name is None:
            raise ValueError(f"no population snapshot for source {source!r}")
        document = self._load(name)
        if not isinstance(document, dict) or not isinstance(document.get("data"), dict):
            return None
        return document

    def population_items(self, source: str, year: int) -> Optional[List[Dict[str, Any]]]:
        """Raw rows for one year, or None when the year is not in the snapshot."""
        document = self.population_document(source)
        if document is None:
            return None
        items = document["data"].get(str(year))
        return list(items) if isinstance(items, list) else None

    def population_years(self, source: str) -> List[int]:
        document = self.population_document(source)
        return _year_keys(document["data"]) if document is not None else []

    # ── Shared ───────────────────────────────────────────────────────────────

    def last_fetched(self, relative: str) -> Optional[str]:
        """The ``lastFetched`` stamp of a snapshot document, if any."""
        document = self._load(relative)
        if isinstance(document, dict) and document.get("lastFetched"):
            return str(document["lastFetched"])
        return None


# ── Writers ───────────────────────────────────────────────────────────────────

def _acled_row(event: Any) -> Dict[str, Any]:
    if isinstance(event, ConflictEvent):
        return event.to_acled_row()
    return to_jsonable(dict(event))


def write_conflict_country(
    root: str | Path,
    iso3: str,
    yearly_data: Mapping[int, Iterable[Any]],
    last_fetched: Optional[str] = None,
    version: str = SNAPSHOT_VERSION,
) -> Path:
    """Write one country's conflict snapshot, merged into any existing file.

    Years present in ``yearly_data`` replace the same years in the existing
    file; other existing years are kept. An unreadable existing file is
    overwritten. Events are stored as ACLED read rows; a ConflictEvent is
    converted with ``to_acled_row()``, a mapping is written as given.

    Returns:
        Path of the written file.
    """
    iso3 = iso3.upper()
    path = Path(root) / CONFLICT_DIR / f"{iso3}.json"
    merged: Dict[str, Any] = {}
    existing = load_json(path)
    if isinstance(existing, dict) and isinstance(existing.get("yearlyData"), dict):
        merged.update(existing["yearlyData"])
    elif path.exists():
        logger.warning("Existing conflict snapshot %s is unreadable; overwriting", path.name)
    for year, events in yearly_data.items():
        merged[str(year)] = [_acled_row(event) for event in events]

    save_json(
        {
            "iso3": iso3,
            "yearlyData": {key: merged[key] for key in sorted(merged)},
            "lastFetched": last_fetched or utc_now_iso(),
            "version": version,
        },
        path,
    )
    return path


def write_conflict_metadata(
    root: str | Path,
    available_countries: Iterable[str],
    years: Iterable[int],
    total_events: int,
    last_fetched: Optional[str] = None,
    version: str = SNAPSHOT_VERSION,
) -> Path:
    """Write ``conflict-data/metadata.json``."""
    countries = sorted({c.upper() for c in available_countries})
    path = Path(root) / CONFLICT_DIR / CONFLICT_METADATA_FILE
    save_json(
        {
            "version": version,
            "lastFetched": last_fetched or utc_now_iso(),
            "totalEvents": int(total_events),
            "countriesCount": len(countries),
            "years": sorted(set(years)),
            "availableCountries": countries,
            "compressionRatio": 0,
        },
        path,
    )
    return path


def write_iom_snapshot(
    root: str | Path,
    idp_data: Mapping[str, IomCountryIdpData],
    last_fetched: Optional[str] = None,
    version: str = SNAPSHOT_VERSION,
) -> Path:
    path = Path(root) / IOM_SNAPSHOT_FILE
    save_json(
        {
            "idpData": {iso3: idp_data[iso3].to_snapshot() for iso3 in sorted(idp_data)},
            "lastFetched": last_fetched or utc_now_iso(),
            "version": version,
        },
        path,
    )
    return path


def write_population_snapshot(
    root: str | Path,
    source: str,
    data_by_year: Mapping[int, List[Dict[str, Any]]],
    last_fetched: Optional[str] = None,
) -> Path:
    """Write a UNHCR or UNRWA snapshot. Years without rows are left out.

    Raises:
        ValueError: If ``source`` has no population snapshot file.
    """
    name = POPULATION_SNAPSHOT_FILES.get(source)
    if name is None:
        raise ValueError(f"no population snapshot for source {source!r}")
    kept = {int(year): items for year, items in data_by_year.items() if items}
    years = sorted(kept, reverse=True)
    path = Path(root) / name
    save_json(
        {
            "lastFetched": last_fetched or utc_now_iso(),
            "years": years,
            "data": {str(year): kept[year] for year in years},
        },
        path,
    )
    return path


def write_coordinate_table(root: str | Path, coordinates: Iterable[CountryCoordinate]) -> Path:
    """Write the coordinate table sorted by ISO3."""
    path = Path(root) / COORDINATE_TABLE_FILE
    save_json(sorted(coordinates, key=lambda c: c.iso3), path)
    return path
