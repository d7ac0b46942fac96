"""Country identity resolution for Displacement Atlas.

Every source names countries differently: UNHCR sends ISO3 codes with a few
legacy irregularities, IOM and ACLED send free-text names, and the snapshot
files carry special non-ISO codes for stateless and unknown populations.
CountryResolver reconciles all of them against one data asset
(``displacementatlas/data``) loaded once per process.

Unresolvable input never raises; it degrades to the ``UNK`` sentinel so that
downstream code can skip or flag the record.
"""

from __future__ import annotations

import functools
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from config.defaults import COUNTRY_NAME_MATCH_THRESHOLD, UNKNOWN_ISO3
from displacementatlas.models.countries import CountryCoordinate
from displacementatlas.utils.levenshtein_utils import best_match

logger = logging.getLogger(__name__)

_DATA_DIR = Path(__file__).resolve().parent.parent / "data"
_COORDINATES_FILE = _DATA_DIR / "country_coordinates.json"
_ALIASES_FILE = _DATA_DIR / "country_aliases.json"


def _load_data_file(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


class CountryResolver:
    """Maps raw codes and names onto the canonical country registry.

    Args:
        coordinates: Canonical registry rows. ISO3 codes must be unique; a
            later duplicate replaces an earlier one.
        aliases: Alias tables as stored in ``country_aliases.json``.
        match_threshold: Minimum Levenshtein ratio accepted by
            resolve_iso3_from_name() for a fuzzy match.
    """

    def __init__(
        self,
        coordinates: Iterable[CountryCoordinate],
        aliases: Mapping[str, Any],
        match_threshold: float = COUNTRY_NAME_MATCH_THRESHOLD,
    ) -> None:
        self._by_iso3: Dict[str, CountryCoordinate] = {}
        for coord in coordinates:
            self._by_iso3[coord.iso3] = coord

        self._code_aliases: Dict[str, str] = dict(aliases.get("code_aliases", {}))
        self._name_aliases: Dict[str, str] = dict(aliases.get("name_aliases", {}))
        self._iso_name_overrides: Dict[str, str] = dict(aliases.get("iso_name_overrides", {}))
        self._acled_names: Dict[str, str] = dict(aliases.get("acled_names", {}))
        self.match_threshold = match_threshold

        # Lower-cased name -> ISO3 index used by resolve_iso3_from_name()
        self._name_index: Dict[str, str] = {}
        for iso3, name in self._acled_names.items():
            self._name_index.setdefault(name.lower(), iso3)
        for coord in self._by_iso3.values():
            self._name_index[coord.name.lower()] = coord.iso3
        canonical_to_iso = {v.lower(): k for k, v in self._iso_name_overrides.items()}
        for alias, canonical in self._name_aliases.items():
            iso3 = canonical_to_iso.get(canonical.lower()) or self._name_index.get(canonical.lower())
            if iso3:
                self._name_index[alias.lower()] = iso3

    @classmethod
    def from_package_data(
        cls, match_threshold: float = COUNTRY_NAME_MATCH_THRESHOLD
    ) -> "CountryResolver":
        """Build a resolver from the data files shipped with the package."""
        raw_coords = _load_data_file(_COORDINATES_FILE)
        aliases = _load_data_file(_ALIASES_FILE)
        coords = [CountryCoordinate.from_dict(row) for row in raw_coords]
        logger.debug("Loaded %d country coordinates from %s", len(coords), _COORDINATES_FILE)
        return cls(coords, aliases, match_threshold=match_threshold)

    # ── Codes ──────────────────────────────────────────────────────────────────

    def resolve_iso3(self, raw_code: object) -> str:
        """Normalize a raw country code to ISO3.

        Uppercases and trims, applies the irregular-code alias table, and
        accepts any remaining 3-letter code as-is.

        Args:
            raw_code: Code as sent by the source (may be None or non-string).

        Returns:
            ISO3 code, or ``UNK`` when the code cannot be resolved.
        """
        if raw_code is None:
            return UNKNOWN_ISO3
        code = str(raw_code).strip().upper()
        if code in self._code_aliases:
            return self._code_aliases[code]
        if len(code) == 3 and code.isalpha():
            return code
        return UNKNOWN_ISO3

    @staticmethod
    def is_unknown(iso3: str) -> bool:
        return iso3 == UNKNOWN_ISO3

    # ── Names ──────────────────────────────────────────────────────────────────

    def resolve_country_name(self, raw_name: Optional[str], iso3: str) -> str:
        """Canonical display name for a source-provided country name.

        Resolution order: raw-name alias table, then ISO3-keyed override,
        then the raw name unchanged.

        Args:
            raw_name: Name as sent by the source.
            iso3: The record's (already resolved) ISO3 code.

        Returns:
            Canonical display name.
        """
        name = (raw_name or "").strip()
        if name in self._name_aliases:
            return self._name_aliases[name]
        override = self._iso_name_overrides.get((iso3 or "").upper())
        if override:
            return override
        if name:
            return name
        coord = self._by_iso3.get((iso3 or "").upper())
        return coord.name if coord else ""

    def display_name(self, iso3: str) -> str:
        """Registry name for an ISO3 code, falling back to the code itself."""
        iso3 = (iso3 or "").upper()
        override = self._iso_name_overrides.get(iso3)
        if override:
            return override
        coord = self._by_iso3.get(iso3)
        return coord.name if coord else iso3

    def resolve_iso3_from_name(self, name: Optional[str]) -> str:
        """Resolve a free-text country name (IOM ``admin0Name``, ACLED ``country``).

        Exact (case-insensitive) lookup across registry names, ACLED names and
        name aliases first; otherwise the best Levenshtein match at or above
        ``match_threshold``.

        Args:
            name: Free-text country name.

        Returns:
            ISO3 code, or ``UNK`` when nothing matches closely enough.
        """
        if not name or not name.strip():
            return UNKNOWN_ISO3
        key = name.strip().lower()
        if key in self._name_index:
            return self._name_index[key]

        candidate, score = best_match(key, self._name_index.keys())
        if candidate is not None and score >= self.match_threshold:
            logger.debug("Fuzzy country match %r -> %r (%.2f)", name, candidate, score)
            return self._name_index[candidate]

        logger.debug("Unresolved country name %r (best score %.2f)", name, score)
        return UNKNOWN_ISO3

    def acled_country_name(self, iso3: str) -> Optional[str]:
        """Country name as the ACLED read endpoint expects it, or None if unmapped."""
        return self._acled_names.get((iso3 or "").upper())

    # ── Coordinates ────────────────────────────────────────────────────────────

    def lookup_coordinate(self, iso3: str) -> Optional[CountryCoordinate]:
        """O(1) registry lookup; None for codes outside the registry."""
        return self._by_iso3.get((iso3 or "").upper())

    def has_coordinates(self, iso3: str) -> bool:
        return (iso3 or "").upper() in self._by_iso3

    def coordinate_map(self) -> Dict[str, CountryCoordinate]:
        return dict(self._by_iso3)

    def coordinates(self) -> List[CountryCoordinate]:
        """Registry rows sorted by ISO3."""
        return [self._by_iso3[k] for k in sorted(self._by_iso3)]


def build_coordinate_table(
    raw_countries: Iterable[Mapping[str, Any]],
    aliases: Optional[Mapping[str, Any]] = None,
) -> List[CountryCoordinate]:
    """Build the canonical registry from an external country payload.

    Accepts REST-Countries-shaped rows (``cca3``, ``name.common``,
    ``capital[0]``, ``capitalInfo.latlng`` falling back to ``latlng``).
    Static overrides are applied on top of the payload, special codes are
    added, and overrides absent from the payload are appended.

    Args:
        raw_countries: Rows from the external geographic source.
        aliases: Alias tables; defaults to the packaged ``country_aliases.json``.

    Returns:
        CountryCoordinate list sorted by ISO3, one row per code.
    """
    if aliases is None:
        aliases = _load_data_file(_ALIASES_FILE)
    overrides: Mapping[str, Mapping[str, Any]] = aliases.get("coordinate_overrides", {})
    special_codes: Mapping[str, str] = aliases.get("special_codes", {})

    table: Dict[str, Dict[str, Any]] = {}
    for raw in raw_countries:
        iso3 = str(raw.get("cca3") or "").upper()
        if len(iso3) != 3:
            continue
        name_field = raw.get("name")
        name = name_field.get("common", iso3) if isinstance(name_field, dict) else str(name_field or iso3)
        capitals = raw.get("capital") or []
        latlng = (raw.get("capitalInfo") or {}).get("latlng") or raw.get("latlng") or [0.0, 0.0]
        row: Dict[str, Any] = {
            "iso3": iso3,
            "name": name,
            "capital": capitals[0] if capitals else "N/A",
            "lat": float(latlng[0]) if len(latlng) > 0 else 0.0,
            "lng": float(latlng[1]) if len(latlng) > 1 else 0.0,
        }
        row.update(overrides.get(iso3, {}))
        table[iso3] = row

    for iso3, name in special_codes.items():
        table[iso3] = {"iso3": iso3, "name": name, "capital": "N/A", "lat": 0.0, "lng": 0.0}

    for iso3, override in overrides.items():
        if iso3 not in table:
            table[iso3] = {
                "iso3": iso3,
                "name": override.get("name", iso3),
                "capital": override.get("capital", "N/A"),
                "lat": override.get("lat", 0.0),
                "lng": override.get("lng", 0.0),
            }

    return [CountryCoordinate.from_dict(table[k]) for k in sorted(table)]


# ── Module-level access to the packaged resolver ──────────────────────────────

@functools.lru_cache(maxsize=1)
def get_default_resolver() -> CountryResolver:
    """The process-wide resolver built from packaged data (loaded once)."""
    return CountryResolver.from_package_data()


def resolve_iso3(raw_code: object) -> str:
    return get_default_resolver().resolve_iso3(raw_code)


def resolve_country_name(raw_name: Optional[str], iso3: str) -> str:
    return get_default_resolver().resolve_country_name(raw_name, iso3)


def lookup_coordinate(iso3: str) -> Optional[CountryCoordinate]:
    return get_default_resolver().lookup_coordinate(iso3)


def resolve_iso3_from_name(name: Optional[str]) -> str:
    return get_default_resolver().resolve_iso3_from_name(name)


def acled_country_name(iso3: str) -> Optional[str]:
    return get_default_resolver().acled_country_name(iso3)
