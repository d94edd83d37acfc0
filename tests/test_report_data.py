"""Tests for per-type row generation."""

from __future__ import annotations

import json

import pandas as pd
import pytest

from opsreports.models import DomainSnapshot, ReportConfiguration
from opsreports.report_utils import get_date_range


@pytest.fixture
def generator(store):
    from opsreports.services import ReportDataGenerator

    return ReportDataGenerator(store)


@pytest.fixture
def october(now):
    return get_date_range("month", now=now)


def _generate(generator, snapshot, window, **config):
    config.setdefault("date_range", "month")
    return generator.generate(ReportConfiguration(**config), snapshot, window)


# ── appointments ──────────────────────────────────────────────────────────────

def test_appointments_keep_only_events_in_range(generator, snapshot, october):
    rows = _generate(generator, snapshot, october, report_type="appointments")
    assert [r["id"] for r in rows] == ["e1", "e2", "e3"]


def test_appointments_project_display_fields(generator, snapshot, october):
    first = _generate(generator, snapshot, october, report_type="appointments")[0]
    assert first == {
        "id": "e1",
        "orderId": "SO-1",
        "customerName": "Acme",
        "startTime": "Oct 01, 2026 00:00",
        "endTime": "01:00",
        "productType": "Fiber",
        "createdBy": "ann@example.com",
        "team": "Alpha",
        "status": "confirmed",
        "changeTypes": "Move, Add",
    }


def test_appointments_default_status_and_empty_change_types(generator, snapshot, october):
    second = _generate(generator, snapshot, october, report_type="appointments")[1]
    assert second["status"] == "scheduled"
    assert second["changeTypes"] == ""


def test_appointments_filtered_by_team(generator, snapshot, october):
    rows = _generate(generator, snapshot, october, report_type="appointments", team_id="t1")
    assert [r["id"] for r in rows] == ["e1", "e2"]


def test_appointments_filtered_by_status_and_user(generator, snapshot, october):
    by_status = _generate(generator, snapshot, october, report_type="appointments", status="completed")
    assert [r["id"] for r in by_status] == ["e3"]

    by_user = _generate(generator, snapshot, october, report_type="appointments", user_id="u2")
    assert [r["id"] for r in by_user] == ["e2"]


def test_appointments_unknown_creator_falls_back(generator, october):
    snapshot = DomainSnapshot(events=[{
        "id": "x", "startTime": "2026-10-10T10:00:00", "endTime": "2026-10-10T11:00:00", "createdBy": "ghost",
    }])
    row = _generate(generator, snapshot, october, report_type="appointments")[0]
    assert row["createdBy"] == "ghost"
    assert row["team"] == "N/A"


def test_generated_timestamps_stay_inside_window(generator, snapshot):
    window = get_date_range("custom", "2026-10-01", "2026-10-15")
    rows = _generate(generator, snapshot, window, report_type="appointments", date_range="custom")
    starts = {event["id"]: event["startTime"] for event in snapshot.events}
    parsed = [pd.Timestamp(starts[r["id"]]) for r in rows]
    assert len(parsed) == 2
    assert all(window.start <= ts <= window.end for ts in parsed)


# ── stored request collections ────────────────────────────────────────────────

def test_tiv_requests_from_store(generator, snapshot, october):
    rows = _generate(generator, snapshot, october, report_type="tiv")
    assert [r["id"] for r in rows] == ["r1", "r2", "r3", "r4"]
    assert rows[0] == {
        "id": "r1",
        "customerName": "Acme",
        "status": "APPROVED",
        "createdAt": "Oct 02, 2026",
        "productType": "Fiber",
        "orderType": "New",
    }
    assert rows[1]["orderType"] == "N/A"


def test_tiv_requests_filtered_by_team(generator, snapshot, october):
    rows = _generate(generator, snapshot, october, report_type="tiv", team_id="t2")
    assert [r["id"] for r in rows] == ["r2", "r4"]


def test_accelerations_from_store(generator, snapshot, october):
    rows = _generate(generator, snapshot, october, report_type="accelerations")
    assert [r["id"] for r in rows] == ["a1", "a2", "a3"]
    assert rows[1]["reason"] == "N/A"
    assert rows[0]["createdAt"] == "Oct 05, 2026"


def test_corrupt_request_collection_yields_no_rows(snapshot, october):
    from opsreports.services import ReportDataGenerator
    from opsreports.storage import MemoryStore

    generator = ReportDataGenerator(MemoryStore({"tivRequests": "{broken"}))
    assert _generate(generator, snapshot, october, report_type="tiv") == []


# ── team summaries ────────────────────────────────────────────────────────────

def test_team_activity_rows(generator, snapshot, october):
    rows = _generate(generator, snapshot, october, report_type="team-activity")
    assert rows == [
        {"teamId": "t1", "teamName": "Alpha", "membersCount": 2, "appointmentsCount": 2, "avgPerMember": "1.00"},
        {"teamId": "t2", "teamName": "Bravo", "membersCount": 1, "appointmentsCount": 1, "avgPerMember": "1.00"},
        {"teamId": "t3", "teamName": "Empty", "membersCount": 0, "appointmentsCount": 0, "avgPerMember": "0"},
    ]


def test_capacity_rows(generator, snapshot, october):
    rows = _generate(generator, snapshot, october, report_type="capacity")
    assert [r["workDays"] for r in rows] == [31, 31, 31]
    # 2 appointments / (2 members * 31 days * 8h)
    assert rows[0]["utilizationRate"] == "0.40%"
    assert rows[1]["utilizationRate"] == "0.40%"
    assert rows[2]["utilizationRate"] == "0%"


def test_team_rows_counts_are_plain_ints(generator, snapshot, october):
    rows = _generate(generator, snapshot, october, report_type="capacity")
    json.dumps(rows)
    assert all(type(r["membersCount"]) is int for r in rows)


def test_unknown_report_type_yields_no_rows(generator, snapshot, october):
    assert _generate(generator, snapshot, october, report_type="nonsense") == []
    assert _generate(generator, snapshot, october, report_type="custom") == []


def test_empty_snapshot(generator, october):
    empty = DomainSnapshot()
    assert _generate(generator, empty, october, report_type="appointments") == []
    assert _generate(generator, empty, october, report_type="team-activity") == []


def test_stored_requests_stay_inside_window(generator, snapshot):
    window = get_date_range("custom", "2026-10-01", "2026-10-03")
    rows = _generate(generator, snapshot, window, report_type="tiv", date_range="custom")
    assert [r["id"] for r in rows] == ["r1", "r2"]
