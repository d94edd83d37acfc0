# -*- coding: utf-8 -*-
"""Row generation for each report type.

Filtering runs on pandas frames built from the domain snapshot (and, for TIV
and acceleration requests, from the collections the console persists in the
local store). Rows are returned as plain dicts ready for sorting and export.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

import pandas as pd

from ..models import DomainSnapshot, ReportConfiguration, ReportType
from ..report_utils import DateRange, Row, get_date_range, parse_timestamp
from ..storage import CollectionCodec, KeyValueStore

logger = logging.getLogger(__name__)

TIV_REQUESTS_KEY = "tivRequests"
ACCELERATIONS_KEY = "accelerations"

HOURS_PER_WORKDAY = 8

EVENT_COLUMNS = [
    "id", "orderId", "customerName", "startTime", "endTime",
    "productType", "createdBy", "status", "changeTypes",
]
TIV_COLUMNS = ["id", "customer_name", "status", "created_at", "product_type", "order_type", "team_id"]
ACCELERATION_COLUMNS = ["id", "order_id", "customer_name", "product_type", "reason", "created_at", "team_id"]

DATETIME_FORMAT = "%b %d, %Y %H:%M"
DATE_FORMAT = "%b %d, %Y"


def _frame(records: Iterable[Any], columns: List[str]) -> pd.DataFrame:
    """DataFrame with a fixed column set; object dtype keeps ids and lists untouched."""
    return pd.DataFrame(list(records), columns=columns, dtype=object)


def _clean(value: Any) -> Any:
    if isinstance(value, (list, tuple, dict)):
        return value
    try:
        return None if pd.isna(value) else value
    except (TypeError, ValueError):
        return value


def _in_range(series: pd.Series, date_range: DateRange) -> pd.Series:
    return series.map(date_range.contains).astype(bool)


def _format(value: Any, fmt: str) -> str:
    ts = parse_timestamp(_clean(value))
    return ts.strftime(fmt) if ts is not None else ""


class ReportDataGenerator:
    """
    Turns a report configuration into rows.

    Supports:
    - appointments, TIV requests and accelerations filtered by date window and team
    - per-team activity and capacity summaries
    - optional narrowing by status and creating user

    Unknown report types produce no rows.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store
        self._tiv_codec = CollectionCodec(TIV_REQUESTS_KEY)
        self._acceleration_codec = CollectionCodec(ACCELERATIONS_KEY)
        self._handlers: Dict[str, Callable[[ReportConfiguration, DomainSnapshot, DateRange], List[Row]]] = {
            ReportType.APPOINTMENTS.value: self._appointments,
            ReportType.TIV.value: self._tiv_requests,
            ReportType.ACCELERATIONS.value: self._accelerations,
            ReportType.TEAM_ACTIVITY.value: self._team_activity,
            ReportType.CAPACITY.value: self._capacity,
        }

    def generate(
        self,
        config: ReportConfiguration,
        snapshot: DomainSnapshot,
        date_range: Optional[DateRange] = None,
    ) -> List[Row]:
        if date_range is None:
            date_range = get_date_range(config.date_range, config.start_date, config.end_date)

        handler = self._handlers.get(config.report_type)
        if handler is None:
            logger.info("No generator for report type %r, returning no rows", config.report_type)
            return []
        return handler(config, snapshot, date_range)

    # ------------------------------------------------------------------ records

    def _appointments(self, config: ReportConfiguration, snapshot: DomainSnapshot, date_range: DateRange) -> List[Row]:
        users = snapshot.user_by_id()
        team_names = snapshot.team_names()

        df = _frame(snapshot.events, EVENT_COLUMNS)
        df = df[_in_range(df["startTime"], date_range)]

        if config.team_id:
            creator_team = df["createdBy"].map(lambda uid: (users.get(uid) or {}).get("teamId"))
            df = df[creator_team == config.team_id]
        if config.user_id:
            df = df[df["createdBy"] == config.user_id]

        rows = []
        for record in df.to_dict("records"):
            created_by = _clean(record["createdBy"])
            user = users.get(created_by) or {}
            change_types = record["changeTypes"]
            rows.append({
                "id": _clean(record["id"]),
                "orderId": _clean(record["orderId"]),
                "customerName": _clean(record["customerName"]),
                "startTime": _format(record["startTime"], DATETIME_FORMAT),
                "endTime": _format(record["endTime"], "%H:%M"),
                "productType": _clean(record["productType"]),
                "createdBy": user.get("email") or created_by,
                "team": team_names.get(user.get("teamId")) or "N/A",
                "status": _clean(record["status"]) or "scheduled",
                "changeTypes": ", ".join(str(c) for c in change_types)
                if isinstance(change_types, (list, tuple)) else "",
            })
        return self._filter_status(rows, config)

    def _stored_requests(
        self,
        codec: CollectionCodec,
        columns: List[str],
        config: ReportConfiguration,
        date_range: DateRange,
    ) -> pd.DataFrame:
        df = _frame(codec.read(self.store), columns)
        df = df[_in_range(df["created_at"], date_range)]
        if config.team_id:
            df = df[df["team_id"] == config.team_id]
        return df

    def _tiv_requests(self, config: ReportConfiguration, snapshot: DomainSnapshot, date_range: DateRange) -> List[Row]:
        df = self._stored_requests(self._tiv_codec, TIV_COLUMNS, config, date_range)
        rows = [
            {
                "id": _clean(record["id"]),
                "customerName": _clean(record["customer_name"]),
                "status": _clean(record["status"]),
                "createdAt": _format(record["created_at"], DATE_FORMAT),
                "productType": _clean(record["product_type"]),
                "orderType": _clean(record["order_type"]) or "N/A",
            }
            for record in df.to_dict("records")
        ]
        return self._filter_status(rows, config)

    def _accelerations(self, config: ReportConfiguration, snapshot: DomainSnapshot, date_range: DateRange) -> List[Row]:
        df = self._stored_requests(self._acceleration_codec, ACCELERATION_COLUMNS, config, date_range)
        return [
            {
                "id": _clean(record["id"]),
                "orderId": _clean(record["order_id"]),
                "customerName": _clean(record["customer_name"]),
                "productType": _clean(record["product_type"]),
                "reason": _clean(record["reason"]) or "N/A",
                "createdAt": _format(record["created_at"], DATE_FORMAT),
            }
            for record in df.to_dict("records")
        ]

    @staticmethod
    def _filter_status(rows: List[Row], config: ReportConfiguration) -> List[Row]:
        if not config.status:
            return rows
        return [row for row in rows if row.get("status") == config.status]

    # ------------------------------------------------------------------- teams

    def _team_counts(self, snapshot: DomainSnapshot, date_range: DateRange):
        """Members per team and in-window appointments created by each team's members."""
        users = _frame(snapshot.users, ["id", "teamId"])
        members = users["teamId"].value_counts()
        team_of = {uid: team for uid, team in zip(users["id"], users["teamId"])}

        events = _frame(snapshot.events, ["startTime", "createdBy"])
        events = events[_in_range(events["startTime"], date_range)]
        appointments = events["createdBy"].map(lambda uid: team_of.get(uid)).value_counts()

        for team in snapshot.teams:
            team_id = team.get("id")
            yield team, int(members.get(team_id, 0)), int(appointments.get(team_id, 0))

    def _team_activity(self, config: ReportConfiguration, snapshot: DomainSnapshot, date_range: DateRange) -> List[Row]:
        rows = []
        for team, member_count, appointment_count in self._team_counts(snapshot, date_range):
            rows.append({
                "teamId": team.get("id"),
                "teamName": team.get("name"),
                "membersCount": member_count,
                "appointmentsCount": appointment_count,
                "avgPerMember": f"{appointment_count / member_count:.2f}" if member_count > 0 else "0",
            })
        return rows

    def _capacity(self, config: ReportConfiguration, snapshot: DomainSnapshot, date_range: DateRange) -> List[Row]:
        work_days = date_range.days
        rows = []
        for team, member_count, appointment_count in self._team_counts(snapshot, date_range):
            potential_capacity = member_count * work_days * HOURS_PER_WORKDAY
            if potential_capacity > 0:
                utilization = f"{appointment_count / potential_capacity * 100:.2f}"
            else:
                utilization = "0"
            rows.append({
                "teamId": team.get("id"),
                "teamName": team.get("name"),
                "membersCount": member_count,
                "appointmentsCount": appointment_count,
                "workDays": work_days,
                "utilizationRate": f"{utilization}%",
            })
        return rows
