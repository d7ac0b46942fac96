"""Source-to-domain normalization for Displacement Atlas.

Pure transforms, one per source, from raw API rows to the shared records
(MigrationFlow, IdpDataPoint, ConflictEvent). Malformed fields degrade to 0,
"" or the unknown sentinel; nothing in this module raises on bad data.

Self-flows and zero-total flows are dropped here, not later.
"""

from __future__ import annotations

import logging
import math
import re
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Mapping, Optional

from config.defaults import UNRWA_ORIGIN_ISO, UNRWA_ORIGIN_NAME
from displacementatlas.models.conflict import ConflictEvent
from displacementatlas.models.flows import MigrationFlow
from displacementatlas.models.idp import IdpDataPoint
from displacementatlas.utils.country_resolver import CountryResolver, get_default_resolver
from displacementatlas.utils.date_utils import normalize_date_str

logger = logging.getLogger(__name__)

# Leading signed integer, as parseInt would read it ("1,200" -> 1, "12abc" -> 12)
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


def parse_count(value: Any) -> int:
    """Parse a numeric field that may hold a placeholder string.

    Numbers pass through (truncated to int). ``"-"``, ``""``, None and any
    string without a leading integer parse to 0. NaN and infinities parse to 0.

    Args:
        value: Raw field value.

    Returns:
        Integer count, never NaN.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    text = str(value)
    if text.strip() in ("", "-"):
        return 0
    match = _LEADING_INT_RE.match(text)
    return int(match.group(1)) if match else 0


def parse_coordinate(value: Any) -> float:
    """Parse a latitude/longitude field; invalid or non-finite values become 0.0."""
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return 0.0
    return parsed if math.isfinite(parsed) else 0.0


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


# ── UNHCR ─────────────────────────────────────────────────────────────────────

def normalize_unhcr_items(
    items: Iterable[Mapping[str, Any]],
    resolver: Optional[CountryResolver] = None,
) -> List[MigrationFlow]:
    """Convert UNHCR population rows into MigrationFlow records.

    Args:
        items: Raw ``items[]`` rows (``coo_iso``, ``coa_iso``, ``refugees``,
            ``asylum_seekers``, ``year`` and the two country names).
        resolver: Country resolver; defaults to the packaged one.

    Returns:
        Flows with origin != asylum and total_displaced > 0, in input order.
    """
    resolver = resolver or get_default_resolver()
    flows: List[MigrationFlow] = []
    dropped = 0
    for item in items:
        origin_iso = resolver.resolve_iso3(item.get("coo_iso"))
        asylum_iso = resolver.resolve_iso3(item.get("coa_iso"))
        if origin_iso == asylum_iso:
            dropped += 1
            continue
        refugees = parse_count(item.get("refugees"))
        asylum_seekers = parse_count(item.get("asylum_seekers"))
        total = refugees + asylum_seekers
        if total <= 0:
            dropped += 1
            continue
        flows.append(
            MigrationFlow(
                origin_iso=origin_iso,
                origin_name=resolver.resolve_country_name(item.get("coo_name"), origin_iso),
                asylum_iso=asylum_iso,
                asylum_name=resolver.resolve_country_name(item.get("coa_name"), asylum_iso),
                refugees=refugees,
                asylum_seekers=asylum_seekers,
                total_displaced=total,
                year=parse_count(item.get("year")),
            )
        )
    if dropped:
        logger.debug("UNHCR normalization dropped %d self/zero flows", dropped)
    return flows


# ── UNRWA ─────────────────────────────────────────────────────────────────────

def normalize_unrwa_items(
    items: Iterable[Mapping[str, Any]],
    year: int,
    resolver: Optional[CountryResolver] = None,
) -> List[MigrationFlow]:
    """Aggregate UNRWA rows by destination into Palestine-origin flows.

    Duplicate destination rows within one response are summed into one
    record. Rows for the origin itself, rows without a destination code and
    rows whose total is not positive are dropped. UNRWA tracks refugees
    only, so asylum_seekers is 0.

    Args:
        items: Raw UNRWA ``items[]`` rows (``coa_iso``, ``coa_name``, ``total``).
        year: Year the rows were requested for.
        resolver: Country resolver; defaults to the packaged one.

    Returns:
        One flow per destination, in first-seen order.
    """
    resolver = resolver or get_default_resolver()
    by_destination: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
    for item in items:
        if not item.get("coa_iso"):
            continue
        asylum_iso = resolver.resolve_iso3(item.get("coa_iso"))
        total = parse_count(item.get("total"))
        if asylum_iso == UNRWA_ORIGIN_ISO or total <= 0:
            continue
        entry = by_destination.setdefault(
            asylum_iso, {"name": _text(item.get("coa_name")), "total": 0}
        )
        entry["total"] += total

    flows: List[MigrationFlow] = []
    for asylum_iso, entry in by_destination.items():
        if entry["total"] <= 0:
            continue
        flows.append(
            MigrationFlow(
                origin_iso=UNRWA_ORIGIN_ISO,
                origin_name=UNRWA_ORIGIN_NAME,
                asylum_iso=asylum_iso,
                asylum_name=resolver.resolve_country_name(entry["name"], asylum_iso),
                refugees=entry["total"],
                asylum_seekers=0,
                total_displaced=entry["total"],
                year=year,
            )
        )
    return flows


# ── IOM DTM ───────────────────────────────────────────────────────────────────

def normalize_iom_points(rows: Iterable[Mapping[str, Any]]) -> List[IdpDataPoint]:
    """Convert DTM ``GetAdmin0Datav2`` rows into IdpDataPoint records.

    The reporting year falls back to the year of ``reportingDate`` when
    ``yearReportingDate`` is missing. Rows are kept even with a zero count;
    the yearly aggregator filters them.

    Args:
        rows: Raw ``result[]`` rows.

    Returns:
        Normalized points in input order.
    """
    points: List[IdpDataPoint] = []
    for row in rows:
        reporting_date = normalize_date_str(row.get("reportingDate"))
        year = parse_count(row.get("yearReportingDate"))
        if not year and reporting_date:
            year = int(reporting_date[:4])
        points.append(
            IdpDataPoint(
                id=parse_count(row.get("id")),
                operation=_text(row.get("operation")),
                admin0_name=_text(row.get("admin0Name")),
                admin0_pcode=_text(row.get("admin0Pcode")).upper(),
                num_present_idp_ind=parse_count(row.get("numPresentIdpInd")),
                reporting_date=reporting_date,
                year=year,
                month=parse_count(row.get("monthReportingDate")),
                round_number=parse_count(row.get("roundNumber")),
                assessment_type=_text(row.get("assessmentType")),
            )
        )
    return points


# ── ACLED ─────────────────────────────────────────────────────────────────────

def normalize_acled_event(row: Mapping[str, Any]) -> ConflictEvent:
    """Convert one ACLED read row into a ConflictEvent.

    Args:
        row: Raw ACLED row restricted to the requested ``fields``.

    Returns:
        ConflictEvent with empty actors/admin levels removed.
    """
    date = normalize_date_str(row.get("event_date"))
    year = parse_count(row.get("year"))
    if not year and date:
        year = int(date[:4])
    actors = [a for a in (_text(row.get("actor1")), _text(row.get("actor2"))) if a]
    admin_levels = [
        _text(row.get("admin1")),
        _text(row.get("admin2")),
        _text(row.get("admin3")),
    ]
    while admin_levels and not admin_levels[-1]:
        admin_levels.pop()
    return ConflictEvent(
        event_id=_text(row.get("event_id_cnty")),
        date=date,
        year=year,
        event_type=_text(row.get("event_type")) or "Unknown",
        sub_event_type=_text(row.get("sub_event_type")),
        actors=actors,
        admin_levels=admin_levels,
        location=_text(row.get("location")),
        lat=parse_coordinate(row.get("latitude")),
        lng=parse_coordinate(row.get("longitude")),
        fatalities=max(parse_count(row.get("fatalities")), 0),
        civilian_targeting=_text(row.get("civilian_targeting")),
    )


def normalize_acled_events(rows: Iterable[Mapping[str, Any]]) -> List[ConflictEvent]:
    """Normalize ACLED rows, preserving source order."""
    return [normalize_acled_event(row) for row in rows]
