"""API endpoints for report generation, templates and history."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional
from urllib.parse import quote

import pandas as pd
from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse, Response

from ..export import EXPORTERS, export_rows
from ..models import DateRangeType, DomainSnapshot, ReportConfiguration, ReportType
from ..report_utils import format_date_range, select_columns
from ..services import (
    ReportEngine,
    ReportPersistenceService,
    StorageWriteError,
    TemplateNotFoundError,
    TemplateValidationError,
)
from ..services.report_service import DEFAULT_EXECUTION_LIMIT

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reports", tags=["reports"])


# ── Dependencies ─────────────────────────────────────────────────────────────

def get_engine(request: Request) -> ReportEngine:
    return request.app.state.report_engine


def get_persistence(request: Request) -> ReportPersistenceService:
    return request.app.state.report_engine.persistence


def require_user(x_user_id: Optional[str] = Header(default=None)) -> str:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id.strip()


def _snapshot(request: Request, payload: Dict[str, Any]) -> DomainSnapshot:
    if isinstance(payload.get("snapshot"), dict):
        return DomainSnapshot.from_dict(payload["snapshot"])
    return request.app.state.snapshot_provider()


def _configuration(
    payload: Dict[str, Any],
    persistence: ReportPersistenceService,
    user_id: str,
) -> ReportConfiguration:
    """Configuration from the body, or from a template the caller can read."""
    if isinstance(payload.get("configuration"), dict):
        raw = payload["configuration"]
    elif payload.get("templateId"):
        template = persistence.get_template(payload["templateId"])
        if template is None or not template.is_visible_to(user_id):
            raise HTTPException(status_code=404, detail="Template not found")
        raw = template.configuration.to_dict()
    else:
        raise HTTPException(status_code=400, detail="configuration or templateId is required")

    try:
        return ReportConfiguration.from_dict(raw)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _content_disposition(filename: str) -> str:
    """Attachment header; unsafe names get a sanitized ``filename`` plus an RFC 5987 ``filename*``."""
    fallback = re.sub(r'["\\/\x00-\x1f\x7f]', "_", filename).encode("ascii", "replace").decode("ascii")
    if fallback == filename:
        return f'attachment; filename="{fallback}"'
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def _storage_failure(exc: StorageWriteError) -> HTTPException:
    logger.error("Report storage write failed", exc_info=True)
    return HTTPException(status_code=500, detail=str(exc))


# ── Generation ───────────────────────────────────────────────────────────────

@router.get("/types")
async def get_report_types() -> JSONResponse:
    """Get available report types and date ranges."""
    return JSONResponse({
        "report_types": [
            {"value": t.value, "label": t.label}
            for t in ReportType if t is not ReportType.CUSTOM
        ],
        "date_ranges": [
            {"value": r.value, "label": r.name.replace("_", " ").title()}
            for r in DateRangeType
        ],
        "export_formats": list(EXPORTERS),
    })


@router.post("/generate")
async def generate_report(
    request: Request,
    payload: Dict[str, Any] = Body(...),
    user_id: str = Depends(require_user),
    engine: ReportEngine = Depends(get_engine),
) -> JSONResponse:
    """
    Generate a report and record it in the caller's history.

    Body: ``configuration`` (or ``templateId``), optional ``snapshot``.
    Rows are projected to the configured columns; ``groups`` holds row counts
    per value of ``groupBy`` when one is set.
    """
    config = _configuration(payload, engine.persistence, user_id)
    snapshot = _snapshot(request, payload)

    try:
        report, execution = engine.run(config, snapshot, user_id, template_id=payload.get("templateId"))
    except StorageWriteError as exc:
        raise _storage_failure(exc)

    body = report.to_dict()
    body["data"] = select_columns(report.data, config.columns)
    if config.group_by and report.data and config.group_by in report.data[0]:
        body["groups"] = {key: len(rows) for key, rows in report.grouped(config.group_by).items()}

    return JSONResponse({"report": body, "executionId": execution.id})


@router.post("/export")
async def export_report(
    request: Request,
    payload: Dict[str, Any] = Body(...),
    user_id: str = Depends(require_user),
    engine: ReportEngine = Depends(get_engine),
) -> Response:
    """Regenerate a report and return it as a CSV, JSON or XLSX download."""
    fmt = str(payload.get("format") or "csv").lower()
    if fmt not in EXPORTERS:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid export format. Must be one of: {', '.join(EXPORTERS)}",
        )

    config = _configuration(payload, engine.persistence, user_id)
    report = engine.generate(config, _snapshot(request, payload))
    rows = select_columns(report.data, config.columns)

    title = format_date_range(pd.Timestamp(report.summary.start), pd.Timestamp(report.summary.end))
    exported = export_rows(rows, payload.get("name") or report.name, fmt, title=f"{report.name}: {title}")
    if exported is None:
        return Response(status_code=204)

    if payload.get("executionId"):
        try:
            engine.persistence.mark_exported(payload["executionId"], user_id, fmt)
        except StorageWriteError as exc:
            raise _storage_failure(exc)

    return Response(
        content=exported.content,
        media_type=exported.media_type,
        headers={"Content-Disposition": _content_disposition(exported.filename)},
    )


# ── Templates ────────────────────────────────────────────────────────────────

@router.get("/templates")
async def list_templates(
    user_id: str = Depends(require_user),
    persistence: ReportPersistenceService = Depends(get_persistence),
) -> JSONResponse:
    return JSONResponse({"templates": [t.to_dict() for t in persistence.list_templates(user_id)]})


@router.post("/templates", status_code=201)
async def create_template(
    payload: Dict[str, Any] = Body(...),
    user_id: str = Depends(require_user),
    persistence: ReportPersistenceService = Depends(get_persistence),
) -> JSONResponse:
    try:
        template = persistence.save_template(
            user_id,
            str(payload.get("name") or ""),
            str(payload.get("description") or ""),
            payload.get("configuration") or {},
        )
    except TemplateValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorageWriteError as exc:
        raise _storage_failure(exc)
    return JSONResponse(template.to_dict(), status_code=201)


@router.get("/templates/{template_id}")
async def get_template(
    template_id: str,
    user_id: str = Depends(require_user),
    persistence: ReportPersistenceService = Depends(get_persistence),
) -> JSONResponse:
    template = persistence.get_template(template_id)
    if template is None:
        raise HTTPException(status_code=404, detail="Template not found")
    return JSONResponse(template.to_dict())


@router.patch("/templates/{template_id}")
async def update_template(
    template_id: str,
    payload: Dict[str, Any] = Body(...),
    user_id: str = Depends(require_user),
    persistence: ReportPersistenceService = Depends(get_persistence),
) -> JSONResponse:
    try:
        template = persistence.update_template(template_id, user_id, payload)
    except TemplateNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except TemplateValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorageWriteError as exc:
        raise _storage_failure(exc)
    return JSONResponse(template.to_dict())


@router.delete("/templates/{template_id}")
async def delete_template(
    template_id: str,
    user_id: str = Depends(require_user),
    persistence: ReportPersistenceService = Depends(get_persistence),
) -> JSONResponse:
    try:
        persistence.delete_template(template_id, user_id)
    except StorageWriteError as exc:
        raise _storage_failure(exc)
    return JSONResponse({"status": "deleted"})


# ── History ──────────────────────────────────────────────────────────────────

@router.get("/executions")
async def list_executions(
    limit: int = Query(DEFAULT_EXECUTION_LIMIT, ge=1, le=100),
    user_id: str = Depends(require_user),
    persistence: ReportPersistenceService = Depends(get_persistence),
) -> JSONResponse:
    return JSONResponse({"executions": [e.to_dict() for e in persistence.list_executions(user_id, limit)]})


@router.delete("/executions/{execution_id}")
async def delete_execution(
    execution_id: str,
    user_id: str = Depends(require_user),
    persistence: ReportPersistenceService = Depends(get_persistence),
) -> JSONResponse:
    try:
        persistence.delete_execution(execution_id, user_id)
    except StorageWriteError as exc:
        raise _storage_failure(exc)
    return JSONResponse({"status": "deleted"})


@router.delete("/user-data")
async def clear_user_data(
    user_id: str = Depends(require_user),
    persistence: ReportPersistenceService = Depends(get_persistence),
) -> JSONResponse:
    try:
        persistence.clear_user_data(user_id)
    except StorageWriteError as exc:
        raise _storage_failure(exc)
    return JSONResponse({"status": "cleared"})
