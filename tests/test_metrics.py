"""Tests for summary metrics and the engine that assembles them."""

from __future__ import annotations

from opsreports.models import ReportConfiguration
from opsreports.services.metrics import (
    calculate_acceleration_metrics,
    calculate_appointment_metrics,
    calculate_capacity_metrics,
    calculate_metrics,
    calculate_team_activity_metrics,
    calculate_tiv_metrics,
)


def test_appointment_metrics():
    rows = [
        {"status": "confirmed", "productType": "Fiber"},
        {"status": "scheduled", "productType": "Copper"},
        {"status": "confirmed", "productType": "Fiber"},
    ]
    assert calculate_appointment_metrics(rows) == {
        "totalAppointments": 3,
        "byStatus": "confirmed: 2, scheduled: 1",
        "uniqueProducts": 2,
    }


def test_tiv_metrics_approval_rate():
    rows = [{"status": s} for s in ("APPROVED", "APPROVED", "PENDING", "PENDING")]
    metrics = calculate_tiv_metrics(rows)
    assert metrics["approved"] == 2
    assert metrics["pending"] == 2
    assert metrics["rejected"] == 0
    assert metrics["approvalRate"] == "50.0%"


def test_tiv_metrics_empty():
    assert calculate_tiv_metrics([])["approvalRate"] == "0%"


def test_acceleration_metrics_counts_distinct_customers():
    rows = [{"customerName": "Acme"}, {"customerName": "Acme"}, {"customerName": "Globex"}]
    assert calculate_acceleration_metrics(rows) == {"totalAccelerations": 3, "uniqueCustomers": 2}


def test_team_activity_metrics_use_snapshot_member_total():
    rows = [{"appointmentsCount": 3}, {"appointmentsCount": 0}]
    metrics = calculate_team_activity_metrics(rows, total_users=9)
    assert metrics == {"totalTeams": 2, "totalMembers": 9, "totalAppointments": 3, "avgPerTeam": "1.50"}
    assert calculate_team_activity_metrics([], 0)["avgPerTeam"] == "0"


def test_capacity_metrics_average_parsed_rates():
    rows = [{"utilizationRate": "10.00%"}, {"utilizationRate": "0%"}, {"utilizationRate": "5.50%"}]
    assert calculate_capacity_metrics(rows) == {"totalTeams": 3, "avgUtilization": "5.17%"}
    assert calculate_capacity_metrics([])["avgUtilization"] == "0.00%"


def test_unknown_type_has_no_metrics():
    assert calculate_metrics("nonsense", [{"a": 1}]) == {}


# ── ReportEngine ──────────────────────────────────────────────────────────────

def test_engine_tiv_month_scenario(engine, snapshot, now):
    config = ReportConfiguration(report_type="tiv", date_range="month")
    report = engine.generate(config, snapshot, now=now)
    # r1..r4 are in October: two approved, two pending
    assert report.summary.total_records == 4
    assert report.summary.metrics["approvalRate"] == "50.0%"
    assert report.summary.start == "2026-10-01"
    assert report.summary.end == "2026-10-31"
    assert report.name == "tiv-report"


def test_engine_team_activity_summary(engine, snapshot, now):
    config = ReportConfiguration(report_type="team-activity")
    report = engine.generate(config, snapshot, now=now)
    assert report.summary.metrics == {
        "totalTeams": 3,
        "totalMembers": 4,
        "totalAppointments": 3,
        "avgPerTeam": "1.00",
    }


def test_engine_capacity_summary(engine, snapshot, now):
    report = engine.generate(ReportConfiguration(report_type="capacity"), snapshot, now=now)
    assert report.summary.metrics["avgUtilization"] == "0.27%"


def test_engine_sorts_when_key_exists(engine, snapshot, now):
    config = ReportConfiguration(report_type="appointments", sort_by="customerName", sort_direction="desc")
    report = engine.generate(config, snapshot, now=now)
    assert [r["customerName"] for r in report.data] == ["Initech", "Globex", "Acme"]


def test_engine_skips_sort_for_unknown_key(engine, snapshot, now):
    config = ReportConfiguration(report_type="appointments", sort_by="createdAt")
    report = engine.generate(config, snapshot, now=now)
    assert [r["id"] for r in report.data] == ["e1", "e2", "e3"]


def test_engine_reports_progress(engine, snapshot, now):
    updates = []
    engine.generate(ReportConfiguration(report_type="appointments"), snapshot,
                    progress_cb=lambda p, m: updates.append(p), now=now)
    assert updates[0] == 5
    assert updates[-1] == 100


def test_engine_run_records_execution(engine, snapshot, service):
    config = ReportConfiguration(report_type="appointments", filters={"source": "test"})
    report, execution = engine.run(config, snapshot, "u1")
    stored = service.list_executions("u1")
    assert [e.id for e in stored] == [execution.id]
    assert stored[0].result_count == len(report.data)
    assert stored[0].filters == {"source": "test"}
    assert stored[0].exported is False
