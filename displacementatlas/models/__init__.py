"""Displacement Atlas data models package.

All source, cache and service schemas are defined here as typed dataclasses.
Normalized records never travel as raw dicts past the normalizer.
"""

from displacementatlas.models.cache import CacheHit, CacheTier, PartialData, Scope
from displacementatlas.models.conflict import (
    ConflictEvent,
    ConflictSummary,
    LocationCount,
    MonthlyTimelineEntry,
)
from displacementatlas.models.countries import CountryCoordinate
from displacementatlas.models.flows import CountryAggregate, MigrationFlow
from displacementatlas.models.idp import (
    IdpDataPoint,
    IdpYearlyRecord,
    IomCountry,
    IomCountryIdpData,
)
from displacementatlas.models.results import CountryDashboard, ServiceResult, ServiceStatus

__all__ = [
    "CacheHit",
    "CacheTier",
    "PartialData",
    "Scope",
    "ConflictEvent",
    "ConflictSummary",
    "LocationCount",
    "MonthlyTimelineEntry",
    "CountryCoordinate",
    "CountryAggregate",
    "MigrationFlow",
    "IdpDataPoint",
    "IdpYearlyRecord",
    "IomCountry",
    "IomCountryIdpData",
    "CountryDashboard",
    "ServiceResult",
    "ServiceStatus",
]
