"""Data models for the reporting engine."""

from .records import GeneratedReport, ReportExecution, ReportSummary, ReportTemplate
from .report_config import DateRangeType, ReportConfiguration, ReportType, SortDirection
from .snapshot import DomainSnapshot

__all__ = [
    "DateRangeType",
    "DomainSnapshot",
    "GeneratedReport",
    "ReportConfiguration",
    "ReportExecution",
    "ReportSummary",
    "ReportTemplate",
    "ReportType",
    "SortDirection",
]
