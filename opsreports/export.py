# -*- coding: utf-8 -*-
"""Download formats for generated report rows.

File names carry a ``yyyy-MM-dd-HHmm`` stamp; tooling that picks up exported
files relies on that pattern, as well as on the CSV quoting rule below.
"""

from __future__ import annotations

import io
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.workbook.child import INVALID_TITLE_REGEX

from .report_utils import Row

logger = logging.getLogger(__name__)

CSV_MEDIA_TYPE = "text/csv"
JSON_MEDIA_TYPE = "application/json"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@dataclass
class ExportedFile:
    filename: str
    content: bytes
    media_type: str


def _stamp(name: str, extension: str, now: Optional[datetime]) -> str:
    moment = now or datetime.now()
    return f"{name}-{moment.strftime('%Y-%m-%d-%H%M')}.{extension}"


def sheet_title(name: str) -> str:
    """Worksheet title for ``name``: characters Excel forbids become "-", at most 31 chars."""
    return INVALID_TITLE_REGEX.sub("-", name or "").strip()[:31] or "Report"


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(_cell_text(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def to_csv(rows: List[Row], name: str, now: Optional[datetime] = None) -> Optional[ExportedFile]:
    """
    Comma-separated export with a header taken from the first row.

    Cells containing a comma are wrapped in double quotes. Embedded quotes are
    written as-is. Returns None when there is nothing to export.
    """
    if not rows:
        logger.warning("No data to export")
        return None

    headers = list(rows[0].keys())
    lines = [",".join(headers)]
    for row in rows:
        cells = []
        for header in headers:
            text = _cell_text(row.get(header))
            cells.append(f'"{text}"' if "," in text else text)
        lines.append(",".join(cells))

    return ExportedFile(
        filename=_stamp(name, "csv", now),
        content="\n".join(lines).encode("utf-8"),
        media_type=CSV_MEDIA_TYPE,
    )


def to_json(rows: List[Row], name: str, now: Optional[datetime] = None) -> ExportedFile:
    """Pretty-printed JSON array; ``[]`` for no rows."""
    content = json.dumps(rows, indent=2, ensure_ascii=False, default=str)
    return ExportedFile(
        filename=_stamp(name, "json", now),
        content=content.encode("utf-8"),
        media_type=JSON_MEDIA_TYPE,
    )


def to_xlsx(rows: List[Row], name: str, now: Optional[datetime] = None, title: Optional[str] = None) -> ExportedFile:
    """Single-sheet workbook with a styled header row."""
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title(name)

    thin = Side(style="thin", color="DDDDDD")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)
    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill("solid", fgColor="2C3E50")

    headers: List[str] = list(rows[0].keys()) if rows else []
    current_row = 1
    if title:
        ws.cell(row=1, column=1, value=title).font = Font(bold=True, size=12)
        current_row = 3

    widths: Dict[int, int] = {}
    for col_idx, header in enumerate(headers, start=1):
        cell = ws.cell(row=current_row, column=col_idx, value=header)
        cell.font = header_font
        cell.fill = header_fill
        cell.border = border
        cell.alignment = Alignment(horizontal="center")
        widths[col_idx] = len(header)

    for row in rows:
        current_row += 1
        for col_idx, header in enumerate(headers, start=1):
            value = row.get(header)
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                value = _cell_text(value)
            cell = ws.cell(row=current_row, column=col_idx, value=value)
            cell.border = border
            widths[col_idx] = max(widths[col_idx], len(str(value)))

    for col_idx, width in widths.items():
        ws.column_dimensions[get_column_letter(col_idx)].width = min(width + 2, 60)

    buffer = io.BytesIO()
    wb.save(buffer)
    return ExportedFile(
        filename=_stamp(name, "xlsx", now),
        content=buffer.getvalue(),
        media_type=XLSX_MEDIA_TYPE,
    )


EXPORTERS: Dict[str, Callable[..., Optional[ExportedFile]]] = {
    "csv": to_csv,
    "json": to_json,
    "xlsx": to_xlsx,
}


def export_rows(
    rows: List[Row],
    name: str,
    fmt: str,
    now: Optional[datetime] = None,
    title: Optional[str] = None,
) -> Optional[ExportedFile]:
    exporter = EXPORTERS.get(fmt.lower())
    if exporter is None:
        raise ValueError(f"Unsupported export format: {fmt}. Must be one of: {', '.join(EXPORTERS)}")
    if exporter is to_xlsx:
        return to_xlsx(rows, name, now=now, title=title)
    return exporter(rows, name, now=now)
