"""Report configuration models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from ..report_utils import parse_timestamp


class ReportType(str, Enum):
    """Type of report to generate."""
    APPOINTMENTS = "appointments"     # Calendar appointments in range
    TIV = "tiv"                       # TIV change requests
    ACCELERATIONS = "accelerations"   # Acceleration requests
    TEAM_ACTIVITY = "team-activity"   # Appointments per team and member
    CAPACITY = "capacity"             # Team utilization against an 8h day
    CUSTOM = "custom"                 # Reserved, produces no rows

    @property
    def label(self) -> str:
        return REPORT_TYPE_LABELS.get(self, self.value.replace("-", " ").title())


REPORT_TYPE_LABELS = {
    ReportType.APPOINTMENTS: "Appointments",
    ReportType.TIV: "TIV Requests",
    ReportType.ACCELERATIONS: "Accelerations",
    ReportType.TEAM_ACTIVITY: "Team Activity",
    ReportType.CAPACITY: "Capacity Utilization",
}


class DateRangeType(str, Enum):
    """Named date windows a report can cover."""
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"
    CUSTOM = "custom"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass
class ReportConfiguration:
    """Declarative description of one report run.

    ``report_type`` is kept as the raw string so an unknown type can still be
    represented; the generator answers it with an empty result.
    """

    report_type: str
    date_range: str = DateRangeType.MONTH.value
    start_date: Optional[str] = None        # ISO date, only used for custom ranges
    end_date: Optional[str] = None
    team_id: Optional[str] = None
    user_id: Optional[str] = None
    status: Optional[str] = None
    columns: List[str] = field(default_factory=list)
    group_by: Optional[str] = None
    sort_by: Optional[str] = None
    sort_direction: str = SortDirection.ASC.value
    filters: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        """Validate configuration."""
        if isinstance(self.report_type, Enum):
            self.report_type = self.report_type.value
        if isinstance(self.date_range, Enum):
            self.date_range = self.date_range.value
        if isinstance(self.sort_direction, Enum):
            self.sort_direction = self.sort_direction.value

        if self.sort_direction not in (SortDirection.ASC.value, SortDirection.DESC.value):
            raise ValueError("sort_direction must be 'asc' or 'desc'")

        # Malformed custom dates are tolerated here and resolved to the
        # current month later; only a well-formed but inverted range is rejected.
        if self.date_range == DateRangeType.CUSTOM.value:
            start = parse_timestamp(self.start_date)
            end = parse_timestamp(self.end_date)
            if start is not None and end is not None and start > end:
                raise ValueError("start_date must be before end_date")

    @property
    def report_type_enum(self) -> Optional[ReportType]:
        try:
            return ReportType(self.report_type)
        except ValueError:
            return None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "reportType": self.report_type,
            "dateRange": self.date_range,
            "columns": list(self.columns),
            "sortBy": self.sort_by,
            "sortDirection": self.sort_direction,
        }
        optional = {
            "startDate": self.start_date,
            "endDate": self.end_date,
            "teamId": self.team_id,
            "userId": self.user_id,
            "status": self.status,
            "groupBy": self.group_by,
            "filters": self.filters,
        }
        data.update({key: value for key, value in optional.items() if value is not None})
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ReportConfiguration":
        return cls(
            report_type=data.get("reportType", ReportType.APPOINTMENTS.value),
            date_range=data.get("dateRange", DateRangeType.MONTH.value),
            start_date=data.get("startDate") or None,
            end_date=data.get("endDate") or None,
            team_id=data.get("teamId") or None,
            user_id=data.get("userId") or None,
            status=data.get("status") or None,
            columns=list(data.get("columns") or []),
            group_by=data.get("groupBy") or None,
            sort_by=data.get("sortBy") or None,
            sort_direction=data.get("sortDirection") or SortDirection.ASC.value,
            filters=data.get("filters"),
        )
