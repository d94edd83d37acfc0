# -*- coding: utf-8 -*-
"""Shared helpers for report generation.

Date windows, timestamp parsing, and the sort/projection helpers used on
generated rows. Everything here is lenient: a value that cannot be parsed
is treated as missing instead of raising.
"""

from __future__ import annotations

import locale
import re
import unicodedata
from dataclasses import dataclass
from datetime import date, datetime
from functools import cmp_to_key
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pandas as pd

Row = Dict[str, Any]

# pandas Period frequencies for the named windows. Weeks run Sunday to Saturday.
PERIOD_FREQUENCIES: Dict[str, str] = {
    "today": "D",
    "week": "W-SAT",
    "month": "M",
    "quarter": "Q",
    "year": "Y",
}

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass(frozen=True)
class DateRange:
    """Closed interval of local, timezone-naive instants."""

    start: pd.Timestamp
    end: pd.Timestamp

    def contains(self, value: Any) -> bool:
        return is_date_in_range(value, self.start, self.end)

    @property
    def days(self) -> int:
        """Length of the window in days, rounded up."""
        nanos = (self.end - self.start).value
        day = pd.Timedelta(days=1).value
        return -(-nanos // day)


def _local_tz():
    return datetime.now().astimezone().tzinfo


def parse_timestamp(value: Any) -> Optional[pd.Timestamp]:
    """Parse an ISO string or datetime into a naive local Timestamp, or None."""
    if value is None or isinstance(value, bool):
        return None
    if not isinstance(value, (str, date, pd.Timestamp)):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        ts = pd.Timestamp(value)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert(_local_tz()).tz_localize(None)
    return ts


def is_date_in_range(value: Any, start: pd.Timestamp, end: pd.Timestamp) -> bool:
    ts = parse_timestamp(value)
    if ts is None:
        return False
    return start <= ts <= end


def _period_bounds(freq: str, now: pd.Timestamp) -> DateRange:
    period = pd.Period(now, freq=freq)
    return DateRange(start=period.start_time, end=period.end_time)


def get_date_range(
    range_type: Any,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    now: Any = None,
) -> DateRange:
    """
    Resolve a named or custom range selector to a concrete window.

    Args:
        range_type: today, week, month, quarter, year or custom
        start_date: ISO start, only read for custom ranges
        end_date: ISO end, only read for custom ranges; a bare date covers the whole day
        now: Reference instant, defaults to the current local time

    Returns:
        DateRange from the first to the last instant of the period
    """
    reference = parse_timestamp(now) if now is not None else None
    if reference is None:
        reference = pd.Timestamp.now()

    kind = getattr(range_type, "value", range_type)
    month = _period_bounds(PERIOD_FREQUENCIES["month"], reference)

    if kind in PERIOD_FREQUENCIES:
        return _period_bounds(PERIOD_FREQUENCIES[kind], reference)

    if kind == "custom":
        start = parse_timestamp(start_date)
        end = parse_timestamp(end_date)
        if end is not None and _DATE_ONLY.match(str(end_date).strip()):
            end = pd.Period(end, freq="D").end_time
        return DateRange(
            start=start if start is not None else month.start,
            end=end if end is not None else month.end,
        )

    return month


def format_day(ts: pd.Timestamp) -> str:
    return ts.strftime("%Y-%m-%d")


def format_date_range(start: pd.Timestamp, end: pd.Timestamp) -> str:
    return f"{start.strftime('%b %d, %Y')} - {end.strftime('%b %d, %Y')}"


# ===================== Sorting / projection =====================

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _fold(text: str) -> str:
    """Base letters only: accents stripped, case folded."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()


def _locale_compare(a: str, b: str) -> int:
    # Base letters first, then accents and case, then the raw strings.
    for left, right in ((_fold(a), _fold(b)), (a.casefold(), b.casefold()), (a, b)):
        result = locale.strcoll(left, right)
        if result:
            return result
    return 0


def _sign(value: float) -> int:
    return (value > 0) - (value < 0)


def sort_data(rows: List[Row], sort_by: str, direction: Any = "asc") -> List[Row]:
    """
    Stable sort of report rows by one key.

    Missing and None values always go last, whatever the direction. Strings
    compare locale-aware, numbers numerically; any other pairing counts as
    equal and keeps its original order.
    """
    descending = getattr(direction, "value", direction) == "desc"

    def compare(a: Row, b: Row) -> int:
        a_val = a.get(sort_by)
        b_val = b.get(sort_by)

        if a_val is None and b_val is None:
            return 0
        if a_val is None:
            return 1
        if b_val is None:
            return -1

        if isinstance(a_val, str) and isinstance(b_val, str):
            result = _sign(_locale_compare(a_val, b_val))
        elif _is_number(a_val) and _is_number(b_val):
            result = _sign(a_val - b_val)
        else:
            return 0
        return -result if descending else result

    return sorted(rows, key=cmp_to_key(compare))


def select_columns(rows: List[Row], columns: Iterable[str]) -> List[Row]:
    columns = list(columns or [])
    if not columns:
        return rows
    return [{col: row[col] for col in columns if col in row} for row in rows]


def group_by_property(rows: Iterable[Mapping[str, Any]], prop: str) -> Dict[str, List[Mapping[str, Any]]]:
    """Group rows by the string form of one property, keeping first-seen order."""
    groups: Dict[str, List[Mapping[str, Any]]] = {}
    for row in rows:
        value = row.get(prop)
        key = "unknown" if value is None else str(value)
        groups.setdefault(key, []).append(row)
    return groups
