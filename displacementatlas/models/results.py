"""Service and dashboard result models for Displacement Atlas.

A failed fetch reaches the presentation layer as a ServiceResult with status
FAILED and the typed error attached, never as an empty record set. An empty
``data`` with status OK means the source confirmed there are no records.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


class ServiceStatus:
    """Status codes used in ServiceResult.status and CountryDashboard.status."""

    OK = "OK"
    PARTIAL = "PARTIAL"
    FAILED = "FAILED"


@dataclass
class ServiceResult:
    """Outcome of one service call."""

    name: str
    status: str = ServiceStatus.OK
    data: Any = None
    warnings: List[str] = field(default_factory=list)
    error: Optional[Exception] = None
    tiers: Dict[str, str] = field(default_factory=dict)   # scope key -> tier served from
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status != ServiceStatus.FAILED

    @property
    def retryable(self) -> bool:
        """True when the UI should offer a retry instead of rendering data."""
        return self.status == ServiceStatus.FAILED

    def unwrap(self) -> Any:
        """Return data, or raise the recorded error for a FAILED result."""
        if self.status == ServiceStatus.FAILED and self.error is not None:
            raise self.error
        return self.data


@dataclass
class CountryDashboard:
    """Drill-down data for one country and year.

    Each section is an independent ServiceResult; one failing section does
    not blank the others.
    """

    iso3: str
    name: str
    year: int
    incoming: ServiceResult
    outgoing: ServiceResult
    idp: ServiceResult
    conflict: ServiceResult

    @property
    def sections(self) -> List[ServiceResult]:
        return [self.incoming, self.outgoing, self.idp, self.conflict]

    @property
    def status(self) -> str:
        statuses = [s.status for s in self.sections]
        if all(s == ServiceStatus.OK for s in statuses):
            return ServiceStatus.OK
        if all(s == ServiceStatus.FAILED for s in statuses):
            return ServiceStatus.FAILED
        return ServiceStatus.PARTIAL

    @property
    def warnings(self) -> List[str]:
        collected: List[str] = []
        for section in self.sections:
            collected.extend(f"[{section.name}] {w}" for w in section.warnings)
            if section.error is not None:
                collected.append(f"[{section.name}] {section.error}")
        return collected
