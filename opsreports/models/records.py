"""Persisted report records and transient report results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from ..report_utils import Row, group_by_property
from .report_config import ReportConfiguration


@dataclass
class ReportSummary:
    """Headline numbers for one generated report."""

    total_records: int
    start: str                               # yyyy-MM-dd
    end: str                                 # yyyy-MM-dd
    metrics: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalRecords": self.total_records,
            "dateRange": {"start": self.start, "end": self.end},
            "metrics": dict(self.metrics),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ReportSummary":
        date_range = data.get("dateRange") or {}
        return cls(
            total_records=int(data.get("totalRecords") or 0),
            start=date_range.get("start", ""),
            end=date_range.get("end", ""),
            metrics=dict(data.get("metrics") or {}),
        )


@dataclass
class GeneratedReport:
    """Output of one generation cycle. Never persisted as a unit."""

    id: str
    name: str
    type: str
    data: List[Row]
    summary: ReportSummary
    generated_at: str

    def grouped(self, prop: str) -> Dict[str, List[Row]]:
        return group_by_property(self.data, prop)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "data": self.data,
            "summary": self.summary.to_dict(),
            "generatedAt": self.generated_at,
        }


@dataclass
class ReportTemplate:
    """A saved configuration. Readable by its owner, or by anyone when public."""

    id: str
    user_id: str
    name: str
    description: str
    report_type: str
    configuration: ReportConfiguration
    is_public: bool = False
    created_at: str = ""
    updated_at: str = ""

    def is_visible_to(self, user_id: str) -> bool:
        return self.user_id == user_id or self.is_public

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "name": self.name,
            "description": self.description,
            "reportType": self.report_type,
            "configuration": self.configuration.to_dict(),
            "isPublic": self.is_public,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ReportTemplate":
        configuration = ReportConfiguration.from_dict(data.get("configuration") or {})
        return cls(
            id=data["id"],
            user_id=data["userId"],
            name=data.get("name", ""),
            description=data.get("description") or "",
            report_type=data.get("reportType") or configuration.report_type,
            configuration=configuration,
            is_public=bool(data.get("isPublic", False)),
            created_at=data.get("createdAt", ""),
            updated_at=data.get("updatedAt", ""),
        )


@dataclass
class ReportExecution:
    """One entry of a user's report history.

    Only ``exported`` and ``export_format`` change after the record is written.
    """

    user_id: str
    report_type: str
    date_range_start: str
    date_range_end: str
    result_count: int
    result_summary: ReportSummary
    filters: Dict[str, Any] = field(default_factory=dict)
    template_id: Optional[str] = None
    exported: bool = False
    export_format: Optional[str] = None
    id: str = ""
    executed_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "userId": self.user_id,
            "reportType": self.report_type,
            "dateRangeStart": self.date_range_start,
            "dateRangeEnd": self.date_range_end,
            "filters": dict(self.filters),
            "resultCount": self.result_count,
            "resultSummary": self.result_summary.to_dict(),
            "executedAt": self.executed_at,
            "exported": self.exported,
        }
        if self.template_id is not None:
            data["templateId"] = self.template_id
        if self.export_format is not None:
            data["exportFormat"] = self.export_format
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ReportExecution":
        return cls(
            id=data.get("id", ""),
            user_id=data["userId"],
            report_type=data.get("reportType", ""),
            date_range_start=data.get("dateRangeStart", ""),
            date_range_end=data.get("dateRangeEnd", ""),
            result_count=int(data.get("resultCount") or 0),
            result_summary=ReportSummary.from_dict(data.get("resultSummary") or {}),
            filters=dict(data.get("filters") or {}),
            template_id=data.get("templateId"),
            exported=bool(data.get("exported", False)),
            export_format=data.get("exportFormat"),
            executed_at=data.get("executedAt", ""),
        )
