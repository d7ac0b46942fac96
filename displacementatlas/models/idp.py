"""Internal displacement (IOM DTM) data models for Displacement Atlas."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional


def _pick(raw: Mapping[str, Any], camel: str, snake: str, default: Any) -> Any:
    """Read a snapshot field by its camelCase key, then its snake_case key."""
    if camel in raw:
        return raw[camel]
    return raw.get(snake, default)


@dataclass
class IdpDataPoint:
    """One admin-0 observation from a DTM round, normalized from the raw row."""

    id: int
    operation: str
    admin0_name: str
    admin0_pcode: str
    num_present_idp_ind: int
    reporting_date: str          # ISO date string (YYYY-MM-DD)
    year: int
    month: int = 0
    round_number: int = 0
    assessment_type: str = ""


@dataclass
class IdpYearlyRecord:
    """One country's displacement estimate for one year.

    total_idps is the latest reported value within the selected operation,
    never a sum or average. min_idps / max_idps span the same partition.
    """

    year: int
    total_idps: int
    data_point_count: int
    min_idps: int
    max_idps: int
    latest_report_date: str
    operation_used: str

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "IdpYearlyRecord":
        return cls(
            year=int(raw["year"]),
            total_idps=int(raw.get("total_idps", 0)),
            data_point_count=int(raw.get("data_point_count", 0)),
            min_idps=int(raw.get("min_idps", 0)),
            max_idps=int(raw.get("max_idps", 0)),
            latest_report_date=raw.get("latest_report_date", ""),
            operation_used=raw.get("operation_used", ""),
        )

    def to_snapshot(self) -> Dict[str, Any]:
        """The record as stored in ``iom-cache.json``."""
        return {
            "year": self.year,
            "totalIdps": self.total_idps,
            "dataPoints": self.data_point_count,
            "minIdps": self.min_idps,
            "maxIdps": self.max_idps,
            "latestReportDate": self.latest_report_date,
            "operation": self.operation_used,
        }

    @classmethod
    def from_snapshot(cls, raw: Mapping[str, Any]) -> "IdpYearlyRecord":
        """Decode a camelCase snapshot record; snake_case keys are accepted too."""
        return cls(
            year=int(raw["year"]),
            total_idps=int(_pick(raw, "totalIdps", "total_idps", 0) or 0),
            data_point_count=int(_pick(raw, "dataPoints", "data_point_count", 0) or 0),
            min_idps=int(_pick(raw, "minIdps", "min_idps", 0) or 0),
            max_idps=int(_pick(raw, "maxIdps", "max_idps", 0) or 0),
            latest_report_date=_pick(raw, "latestReportDate", "latest_report_date", "") or "",
            operation_used=_pick(raw, "operation", "operation_used", "") or "",
        )


@dataclass
class IomCountryIdpData:
    """All yearly records for one country, newest year first."""

    country_name: str
    iso3: str
    yearly_data: List[IdpYearlyRecord] = field(default_factory=list)
    last_updated: str = ""
    has_data: bool = True

    def for_year(self, year: int) -> Optional[IdpYearlyRecord]:
        for record in self.yearly_data:
            if record.year == year:
                return record
        return None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "IomCountryIdpData":
        return cls(
            country_name=raw.get("country_name", ""),
            iso3=raw["iso3"],
            yearly_data=[IdpYearlyRecord.from_dict(r) for r in raw.get("yearly_data", [])],
            last_updated=raw.get("last_updated", ""),
            has_data=bool(raw.get("has_data", True)),
        )

    def to_snapshot(self) -> Dict[str, Any]:
        """The country record as stored under ``idpData`` in ``iom-cache.json``."""
        return {
            "countryName": self.country_name,
            "iso3": self.iso3,
            "yearlyData": [record.to_snapshot() for record in self.yearly_data],
            "lastUpdated": self.last_updated,
            "hasData": self.has_data,
        }

    @classmethod
    def from_snapshot(cls, raw: Mapping[str, Any], iso3: Optional[str] = None) -> "IomCountryIdpData":
        """Decode a snapshot country record.

        Args:
            raw: Country record with camelCase keys (snake_case accepted).
            iso3: ISO3 it is filed under, used when the record omits ``iso3``.

        Returns:
            IomCountryIdpData; ``has_data`` is False when no year decoded.
        """
        yearly = [
            IdpYearlyRecord.from_snapshot(item)
            for item in _pick(raw, "yearlyData", "yearly_data", None) or []
            if isinstance(item, Mapping) and "year" in item
        ]
        yearly.sort(key=lambda r: r.year, reverse=True)
        return cls(
            country_name=_pick(raw, "countryName", "country_name", "") or "",
            iso3=str(raw.get("iso3") or iso3 or "").upper(),
            yearly_data=yearly,
            last_updated=_pick(raw, "lastUpdated", "last_updated", "") or "",
            has_data=bool(_pick(raw, "hasData", "has_data", True)) and bool(yearly),
        )


@dataclass
class IomCountry:
    """One entry from the DTM country list."""

    name: str
    iso3: str
