"""Report engine tying range resolution, row generation, metrics and sorting together."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple

from ..models import DomainSnapshot, GeneratedReport, ReportConfiguration, ReportExecution, ReportSummary
from ..report_utils import format_day, get_date_range, sort_data
from ..storage import KeyValueStore
from .metrics import calculate_metrics
from .report_data import ReportDataGenerator
from .report_service import ReportPersistenceService

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], None]


def _noop_progress(_: int, __: str) -> None:
    """Default progress callback that swallows updates."""


class ReportEngine:
    """
    Generates reports from a configuration and a domain snapshot.

    Supports:
    - named (today, week, month, quarter, year) and custom date windows
    - per-type metrics on the generated rows
    - sorting by any key present on the rows
    - optional recording of each run in the caller's history
    """

    def __init__(
        self,
        store: KeyValueStore,
        persistence: Optional[ReportPersistenceService] = None,
    ):
        """
        Initialize the engine.

        Args:
            store: Local store holding the console's persisted collections
            persistence: History/template service; built on ``store`` when omitted
        """
        self.store = store
        self.generator = ReportDataGenerator(store)
        self.persistence = persistence or ReportPersistenceService(store)

    def generate(
        self,
        config: ReportConfiguration,
        snapshot: DomainSnapshot,
        progress_cb: ProgressCallback = _noop_progress,
        now=None,
    ) -> GeneratedReport:
        """
        Generate one report.

        Args:
            config: Report configuration
            snapshot: Read-only domain data
            progress_cb: Optional callback for progress updates
            now: Reference instant for named date windows

        Returns:
            GeneratedReport with sorted rows and summary metrics
        """
        progress_cb(5, "Resolving date range...")
        date_range = get_date_range(config.date_range, config.start_date, config.end_date, now=now)

        progress_cb(20, "Collecting rows...")
        rows = self.generator.generate(config, snapshot, date_range)

        progress_cb(60, "Calculating metrics...")
        metrics = calculate_metrics(config.report_type, rows, total_users=len(snapshot.users))

        if config.sort_by and rows and config.sort_by in rows[0]:
            progress_cb(80, f"Sorting by {config.sort_by}...")
            rows = sort_data(rows, config.sort_by, config.sort_direction)

        summary = ReportSummary(
            total_records=len(rows),
            start=format_day(date_range.start),
            end=format_day(date_range.end),
            metrics=metrics,
        )
        report = GeneratedReport(
            id=str(uuid.uuid4()),
            name=f"{config.report_type}-report",
            type=config.report_type,
            data=rows,
            summary=summary,
            generated_at=datetime.now(timezone.utc).isoformat(),
        )
        logger.info(
            "Generated %s report with %d row(s) for %s..%s",
            config.report_type, len(rows), summary.start, summary.end,
        )
        progress_cb(100, "Done")
        return report

    def run(
        self,
        config: ReportConfiguration,
        snapshot: DomainSnapshot,
        user_id: str,
        template_id: Optional[str] = None,
        progress_cb: ProgressCallback = _noop_progress,
    ) -> Tuple[GeneratedReport, ReportExecution]:
        """Generate a report and record the run in ``user_id``'s history."""
        report = self.generate(config, snapshot, progress_cb=progress_cb)
        execution = self.persistence.record_execution(user_id, config, report, template_id=template_id)
        return report, execution
