"""Owner-scoped storage of report templates and execution history."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

import pandas as pd

from ..models import GeneratedReport, ReportConfiguration, ReportExecution, ReportTemplate
from ..report_utils import parse_timestamp
from ..storage import CollectionCodec, KeyValueStore

logger = logging.getLogger(__name__)

TEMPLATES_KEY = "report_templates"
EXECUTIONS_KEY = "report_executions"

MAX_EXECUTIONS_PER_USER = 100
DEFAULT_EXECUTION_LIMIT = 50

# Fields a template update may never overwrite.
_PROTECTED_TEMPLATE_FIELDS = {"id", "userId", "createdAt"}


class ReportServiceError(Exception):
    """Base class for failures surfaced to the caller."""


class TemplateNotFoundError(ReportServiceError):
    """No template with that id is owned by the caller."""


class TemplateValidationError(ReportServiceError, ValueError):
    """Template input was rejected before anything was written."""


class StorageWriteError(ReportServiceError):
    """The store refused a write (quota, disk, serialization)."""


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _isoformat(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


# Errors a stored record can raise while being turned back into a model.
_MALFORMED_RECORD_ERRORS = (AttributeError, KeyError, TypeError, ValueError)


def _executed_at(record: Mapping[str, Any]) -> pd.Timestamp:
    ts = parse_timestamp(record.get("executedAt"))
    return ts if ts is not None else pd.Timestamp.min


def _parse_record(factory: Callable[[Mapping[str, Any]], Any], item: Mapping[str, Any], kind: str) -> Any:
    """Model for one stored item, or None when the item cannot be read."""
    try:
        return factory(item)
    except _MALFORMED_RECORD_ERRORS:
        logger.warning("Skipping malformed %s %r", kind, item.get("id"), exc_info=True)
        return None


class ReportPersistenceService:
    """
    Templates and execution history kept as two collections in one store.

    Every operation reads the whole collection, changes it and writes it
    back. There is no locking; a single writer is assumed.
    """

    def __init__(
        self,
        store: KeyValueStore,
        clock: Callable[[], datetime] = _utc_now,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self.store = store
        self.clock = clock
        self.id_factory = id_factory
        self._templates = CollectionCodec(TEMPLATES_KEY, required=("id", "userId"))
        self._executions = CollectionCodec(EXECUTIONS_KEY, required=("id", "userId", "executedAt"))

    def _now(self) -> str:
        return _isoformat(self.clock())

    def _write(self, codec: CollectionCodec, items: List[Dict[str, Any]], failure: str) -> None:
        try:
            codec.write(self.store, items)
        except (OSError, TypeError, ValueError) as exc:
            logger.error("%s", failure, exc_info=True)
            raise StorageWriteError(failure) from exc

    # ---------------------------------------------------------------- templates

    def list_templates(self, user_id: str) -> List[ReportTemplate]:
        """Templates owned by ``user_id`` plus every public one."""
        templates = (
            _parse_record(ReportTemplate.from_dict, item, "template")
            for item in self._templates.read(self.store)
        )
        return [template for template in templates if template is not None and template.is_visible_to(user_id)]

    def get_template(self, template_id: str) -> Optional[ReportTemplate]:
        # Lookup primitive only: no ownership check on reads.
        for item in self._templates.read(self.store):
            if item["id"] == template_id:
                return _parse_record(ReportTemplate.from_dict, item, "template")
        return None

    def save_template(
        self,
        user_id: str,
        name: str,
        description: str,
        config: Union[ReportConfiguration, Mapping[str, Any]],
    ) -> ReportTemplate:
        if not name or not name.strip():
            raise TemplateValidationError("Template name is required")
        if not isinstance(config, ReportConfiguration):
            try:
                config = ReportConfiguration.from_dict(config)
            except ValueError as exc:
                raise TemplateValidationError(str(exc)) from exc

        now = self._now()
        template = ReportTemplate(
            id=self.id_factory(),
            user_id=user_id,
            name=name,
            description=description or "",
            report_type=config.report_type,
            configuration=config,
            is_public=False,
            created_at=now,
            updated_at=now,
        )

        items = self._templates.read(self.store)
        items.append(template.to_dict())
        self._write(self._templates, items, "Failed to save template")
        logger.info("Saved report template %s for user %s", template.id, user_id)
        return template

    def update_template(self, template_id: str, user_id: str, updates: Mapping[str, Any]) -> ReportTemplate:
        items = self._templates.read(self.store)
        index = next(
            (i for i, item in enumerate(items) if item["id"] == template_id and item["userId"] == user_id),
            None,
        )
        if index is None:
            raise TemplateNotFoundError("Template not found or unauthorized")

        changes = {key: value for key, value in updates.items() if key not in _PROTECTED_TEMPLATE_FIELDS}
        configuration = changes.get("configuration")
        if isinstance(configuration, ReportConfiguration):
            changes["configuration"] = configuration.to_dict()
        if isinstance(changes.get("configuration"), Mapping):
            # Validate before writing and keep the denormalized type in step.
            try:
                parsed = ReportConfiguration.from_dict(changes["configuration"])
            except ValueError as exc:
                raise TemplateValidationError(str(exc)) from exc
            changes["configuration"] = parsed.to_dict()
            changes["reportType"] = parsed.report_type
        if "name" in changes and not str(changes["name"] or "").strip():
            raise TemplateValidationError("Template name is required")

        merged = {**items[index], **changes, "updatedAt": self._now()}
        try:
            items[index] = ReportTemplate.from_dict(merged).to_dict()
        except _MALFORMED_RECORD_ERRORS as exc:
            raise TemplateValidationError(f"Stored template cannot be updated: {exc}") from exc
        self._write(self._templates, items, "Failed to update template")
        return ReportTemplate.from_dict(items[index])

    def delete_template(self, template_id: str, user_id: str) -> None:
        items = self._templates.read(self.store)
        remaining = [item for item in items if not (item["id"] == template_id and item["userId"] == user_id)]
        if len(remaining) == len(items):
            return
        self._write(self._templates, remaining, "Failed to delete template")

    # --------------------------------------------------------------- executions

    def list_executions(self, user_id: str, limit: int = DEFAULT_EXECUTION_LIMIT) -> List[ReportExecution]:
        """The caller's history, newest first."""
        own = []
        for pos, item in enumerate(self._executions.read(self.store)):
            if item["userId"] != user_id:
                continue
            execution = _parse_record(ReportExecution.from_dict, item, "execution")
            if execution is not None:
                own.append((_executed_at(item), pos, execution))
        own.sort(key=lambda entry: (entry[0], entry[1]), reverse=True)
        return [execution for _, _, execution in own[:max(limit, 0)]]

    def save_execution(self, execution: Union[ReportExecution, Mapping[str, Any]]) -> ReportExecution:
        """
        Append an execution and apply the retention policy.

        The caller's history is capped at MAX_EXECUTIONS_PER_USER; the oldest
        entries by ``executedAt`` are dropped. Other users' entries are never
        touched.
        """
        if not isinstance(execution, ReportExecution):
            execution = ReportExecution.from_dict(execution)
        execution.id = self.id_factory()
        execution.executed_at = self._now()

        items = self._executions.read(self.store)
        items.append(execution.to_dict())
        items = self._apply_retention(items, execution.user_id)
        self._write(self._executions, items, "Failed to save execution")
        return execution

    @staticmethod
    def _apply_retention(items: List[Dict[str, Any]], user_id: str) -> List[Dict[str, Any]]:
        own = [(pos, item) for pos, item in enumerate(items) if item["userId"] == user_id]
        if len(own) <= MAX_EXECUTIONS_PER_USER:
            return items
        # Ties on executedAt go to the later write.
        ranked = sorted(own, key=lambda pair: (_executed_at(pair[1]), pair[0]), reverse=True)
        keep = {pos for pos, _ in ranked[:MAX_EXECUTIONS_PER_USER]}
        logger.info("Pruned %d old execution(s) for user %s", len(own) - len(keep), user_id)
        return [item for pos, item in enumerate(items) if item["userId"] != user_id or pos in keep]

    def record_execution(
        self,
        user_id: str,
        config: ReportConfiguration,
        report: GeneratedReport,
        template_id: Optional[str] = None,
    ) -> ReportExecution:
        return self.save_execution(ReportExecution(
            user_id=user_id,
            template_id=template_id,
            report_type=config.report_type,
            date_range_start=report.summary.start,
            date_range_end=report.summary.end,
            filters=dict(config.filters or {}),
            result_count=len(report.data),
            result_summary=report.summary,
            exported=False,
        ))

    def mark_exported(self, execution_id: str, user_id: str, export_format: str) -> Optional[ReportExecution]:
        """Flag an owned execution as exported. Returns None when there is no match."""
        items = self._executions.read(self.store)
        for item in items:
            if item["id"] == execution_id and item["userId"] == user_id:
                item["exported"] = True
                item["exportFormat"] = export_format
                self._write(self._executions, items, "Failed to update execution")
                return _parse_record(ReportExecution.from_dict, item, "execution")
        return None

    def delete_execution(self, execution_id: str, user_id: str) -> None:
        items = self._executions.read(self.store)
        remaining = [item for item in items if not (item["id"] == execution_id and item["userId"] == user_id)]
        if len(remaining) == len(items):
            return
        self._write(self._executions, remaining, "Failed to delete execution")

    def clear_user_data(self, user_id: str) -> None:
        """Remove every template and execution owned by ``user_id``."""
        templates = [item for item in self._templates.read(self.store) if item["userId"] != user_id]
        self._write(self._templates, templates, "Failed to clear user data")
        executions = [item for item in self._executions.read(self.store) if item["userId"] != user_id]
        self._write(self._executions, executions, "Failed to clear user data")
        logger.info("Cleared report data for user %s", user_id)
