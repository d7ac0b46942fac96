"""IDP yearly aggregation for Displacement Atlas.

Collapses the many DTM observation rounds reported for one country into one
figure per year using an operation-priority policy:

1. Drop points whose count is not positive, then group by reporting year.
2. Within a year, if any point belongs to the priority operation
   ("Countrywide monitoring"), use only those points; otherwise use all.
3. Sort the selected points by reporting date, newest first, and report the
   newest point's value. The figure is the latest report, never a sum or an
   average. min/max are tracked across the same selected points.

Years left with no points are omitted rather than stored as zero.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional

from config.defaults import DISPLACEMENT_CACHE_TTL, IOM_PRIORITY_OPERATION
from displacementatlas.models.idp import IdpDataPoint, IdpYearlyRecord, IomCountryIdpData
from displacementatlas.utils.date_utils import days_since, sort_timestamp, utc_now_iso

logger = logging.getLogger(__name__)


def aggregate_by_year(
    points: Iterable[IdpDataPoint],
    priority_operation: str = IOM_PRIORITY_OPERATION,
) -> List[IdpYearlyRecord]:
    """Aggregate raw DTM points into yearly records.

    Args:
        points: Normalized data points for one country (any operations).
        priority_operation: Operation that, when present in a year, is used
            exclusively for that year.

    Returns:
        Yearly records sorted by year, newest first.
    """
    by_year: Dict[int, List[IdpDataPoint]] = {}
    for point in points:
        if point.num_present_idp_ind <= 0 or point.year <= 0:
            continue
        by_year.setdefault(point.year, []).append(point)

    records: List[IdpYearlyRecord] = []
    for year, year_points in by_year.items():
        priority = [p for p in year_points if p.operation == priority_operation]
        selected = priority or year_points
        newest_first = sorted(
            selected, key=lambda p: sort_timestamp(p.reporting_date), reverse=True
        )
        latest = newest_first[0]
        counts = [p.num_present_idp_ind for p in selected]
        records.append(
            IdpYearlyRecord(
                year=year,
                total_idps=latest.num_present_idp_ind,
                data_point_count=len(selected),
                min_idps=min(counts),
                max_idps=max(counts),
                latest_report_date=latest.reporting_date,
                operation_used=latest.operation,
            )
        )

    records.sort(key=lambda r: r.year, reverse=True)
    return records


def process_country_idp_data(
    points: List[IdpDataPoint],
    iso3: str,
    priority_operation: str = IOM_PRIORITY_OPERATION,
) -> Optional[IomCountryIdpData]:
    """Build one country's IDP record set.

    Args:
        points: Normalized points for the country.
        iso3: Country ISO3 code.
        priority_operation: See aggregate_by_year().

    Returns:
        IomCountryIdpData, or None when no year survives aggregation.
    """
    if not points:
        return None
    yearly = aggregate_by_year(points, priority_operation)
    if not yearly:
        return None
    return IomCountryIdpData(
        country_name=points[0].admin0_name,
        iso3=iso3,
        yearly_data=yearly,
        last_updated=utc_now_iso(),
        has_data=True,
    )


def process_all_idp_data(
    points_by_country: Mapping[str, List[IdpDataPoint]],
    priority_operation: str = IOM_PRIORITY_OPERATION,
) -> Dict[str, IomCountryIdpData]:
    """Process every country's points; countries without data are left out."""
    processed: Dict[str, IomCountryIdpData] = {}
    for iso3, points in points_by_country.items():
        country = process_country_idp_data(points, iso3, priority_operation)
        if country is not None:
            processed[iso3] = country
    logger.info(
        "IOM: processed %d/%d countries with IDP data", len(processed), len(points_by_country)
    )
    return processed


def get_idp_data_for_year(
    country: Optional[IomCountryIdpData], year: int
) -> Optional[IdpYearlyRecord]:
    """The record for one year, or None."""
    if country is None:
        return None
    return country.for_year(year)


def countries_for_year(
    idp_data: Mapping[str, IomCountryIdpData], year: int
) -> Dict[str, IdpYearlyRecord]:
    """ISO3 -> record for every country reporting the given year."""
    result: Dict[str, IdpYearlyRecord] = {}
    for iso3, country in idp_data.items():
        record = country.for_year(year)
        if record is not None:
            result[iso3] = record
    return result


def available_idp_years(idp_data: Mapping[str, IomCountryIdpData]) -> Dict[int, List[str]]:
    """Year -> sorted ISO3 codes reporting it, years ascending."""
    years: Dict[int, List[str]] = {}
    for iso3, country in idp_data.items():
        for record in country.yearly_data:
            years.setdefault(record.year, []).append(iso3)
    return {year: sorted(years[year]) for year in sorted(years)}


def should_refresh(last_fetched: Optional[str], max_age_days: Optional[float] = None) -> bool:
    """Whether a dataset fetched at ``last_fetched`` is older than allowed.

    Args:
        last_fetched: ISO timestamp of the last fetch (None means never).
        max_age_days: Allowed age; defaults to the displacement cache TTL.

    Returns:
        True when the data is missing, unparseable or too old.
    """
    if max_age_days is None:
        max_age_days = DISPLACEMENT_CACHE_TTL / 86400.0
    age = days_since(last_fetched)
    return age is None or age > max_age_days
