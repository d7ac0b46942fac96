"""Flow merging and roll-up for Displacement Atlas.

merge_flows() combines UNHCR flows with UNRWA flows keyed by
(origin_iso, asylum_iso). The merge is additive: a secondary record whose key
already exists adds its refugees and total into the primary record; it never
overwrites. Merging the same secondary set twice therefore counts it twice.

All functions here are pure and return new records; inputs are never mutated.
"""

from __future__ import annotations

import dataclasses
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Tuple

from config.defaults import UNRWA_HOST_COUNTRIES, UNRWA_ORIGIN_ISO
from displacementatlas.models.flows import CountryAggregate, MigrationFlow


def merge_flows(
    primary: Iterable[MigrationFlow],
    secondary: Iterable[MigrationFlow],
) -> List[MigrationFlow]:
    """Merge secondary flows into primary flows with additive precedence.

    For a key present in both inputs the secondary's refugees are added to
    the primary's refugees and total_displaced; every other field keeps the
    primary's value. A key present only in secondary becomes a new record
    with asylum_seekers 0 and total_displaced equal to its refugees.

    Args:
        primary: Flows from the primary source (UNHCR).
        secondary: Flows from the secondary source (UNRWA).

    Returns:
        One record per distinct key: primary keys in primary order, then
        secondary-only keys in secondary order.
    """
    merged: "OrderedDict[Tuple[str, str], MigrationFlow]" = OrderedDict()
    for flow in primary:
        existing = merged.get(flow.key)
        if existing is None:
            merged[flow.key] = dataclasses.replace(flow)
        else:
            # Duplicate keys inside one input are folded in the same way
            existing.refugees += flow.refugees
            existing.asylum_seekers += flow.asylum_seekers
            existing.total_displaced += flow.total_displaced

    for flow in secondary:
        existing = merged.get(flow.key)
        if existing is not None:
            existing.refugees += flow.refugees
            existing.total_displaced += flow.refugees
        else:
            merged[flow.key] = MigrationFlow(
                origin_iso=flow.origin_iso,
                origin_name=flow.origin_name,
                asylum_iso=flow.asylum_iso,
                asylum_name=flow.asylum_name,
                refugees=flow.refugees,
                asylum_seekers=0,
                total_displaced=flow.refugees,
                year=flow.year,
            )
    return list(merged.values())


def should_fetch_unrwa(flows: Iterable[MigrationFlow], iso3: Optional[str] = None) -> bool:
    """Whether UNRWA data is relevant to a view.

    True for any UNRWA host country (Palestine included), and for any flow
    set that already involves Palestine as origin, or as destination from a
    host country.
    """
    if iso3 and iso3.upper() in UNRWA_HOST_COUNTRIES:
        return True
    return any(
        f.origin_iso == UNRWA_ORIGIN_ISO
        or (f.asylum_iso == UNRWA_ORIGIN_ISO and f.origin_iso in UNRWA_HOST_COUNTRIES)
        for f in flows
    )


def filter_palestine_flows(flows: Iterable[MigrationFlow]) -> List[MigrationFlow]:
    """Flows with Palestine as origin or destination."""
    return [f for f in flows if UNRWA_ORIGIN_ISO in (f.origin_iso, f.asylum_iso)]


def aggregate_by_country(
    flows: Iterable[MigrationFlow], group_by: str = "origin"
) -> Dict[str, CountryAggregate]:
    """Roll flows up per country.

    Args:
        flows: Flows to aggregate.
        group_by: ``"origin"`` or ``"asylum"``.

    Returns:
        ISO3 -> CountryAggregate (total displaced and number of flows).

    Raises:
        ValueError: If group_by is not ``"origin"`` or ``"asylum"``.
    """
    if group_by not in ("origin", "asylum"):
        raise ValueError(f"group_by must be 'origin' or 'asylum', got {group_by!r}")
    aggregates: Dict[str, CountryAggregate] = {}
    for flow in flows:
        if group_by == "origin":
            iso, name = flow.origin_iso, flow.origin_name
        else:
            iso, name = flow.asylum_iso, flow.asylum_name
        entry = aggregates.get(iso)
        if entry is None:
            entry = aggregates[iso] = CountryAggregate(iso=iso, name=name)
        entry.total += flow.total_displaced
        entry.count += 1
    return aggregates


def top_flows(flows: Iterable[MigrationFlow], n: int = 10) -> List[MigrationFlow]:
    """The n largest flows by total_displaced (stable for ties)."""
    return sorted(flows, key=lambda f: f.total_displaced, reverse=True)[: max(n, 0)]


def filter_by_volume(flows: Iterable[MigrationFlow], minimum: int) -> List[MigrationFlow]:
    """Flows whose total_displaced is at least ``minimum``."""
    return [f for f in flows if f.total_displaced >= minimum]


def group_by_year(flows: Iterable[MigrationFlow]) -> Dict[int, List[MigrationFlow]]:
    """Bucket flows by year, years ascending."""
    grouped: Dict[int, List[MigrationFlow]] = {}
    for flow in flows:
        grouped.setdefault(flow.year, []).append(flow)
    return {year: grouped[year] for year in sorted(grouped)}
