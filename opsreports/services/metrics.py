"""Summary metrics per report type."""

from __future__ import annotations

from typing import Any, Callable, Dict, List

from ..models import ReportType
from ..report_utils import Row

Metrics = Dict[str, Any]


def calculate_appointment_metrics(rows: List[Row]) -> Metrics:
    by_status: Dict[str, int] = {}
    products = set()
    for row in rows:
        status = str(row.get("status") or "scheduled")
        by_status[status] = by_status.get(status, 0) + 1
        products.add(str(row.get("productType") or "unknown"))

    return {
        "totalAppointments": len(rows),
        "byStatus": ", ".join(f"{status}: {count}" for status, count in by_status.items()),
        "uniqueProducts": len(products),
    }


def calculate_tiv_metrics(rows: List[Row]) -> Metrics:
    approved = sum(1 for row in rows if row.get("status") == "APPROVED")
    pending = sum(1 for row in rows if row.get("status") == "PENDING")
    rejected = sum(1 for row in rows if row.get("status") == "REJECTED")

    return {
        "totalRequests": len(rows),
        "approved": approved,
        "pending": pending,
        "rejected": rejected,
        "approvalRate": f"{approved / len(rows) * 100:.1f}%" if rows else "0%",
    }


def calculate_acceleration_metrics(rows: List[Row]) -> Metrics:
    return {
        "totalAccelerations": len(rows),
        "uniqueCustomers": len({row.get("customerName") for row in rows}),
    }


def calculate_team_activity_metrics(rows: List[Row], total_users: int) -> Metrics:
    # Member total comes from the whole snapshot, not from the team rows.
    total_appointments = sum(int(row.get("appointmentsCount") or 0) for row in rows)
    return {
        "totalTeams": len(rows),
        "totalMembers": total_users,
        "totalAppointments": total_appointments,
        "avgPerTeam": f"{total_appointments / len(rows):.2f}" if rows else "0",
    }


def _percentage(value: Any) -> float:
    try:
        return float(str(value or "0%").replace("%", ""))
    except ValueError:
        return 0.0


def calculate_capacity_metrics(rows: List[Row]) -> Metrics:
    average = sum(_percentage(row.get("utilizationRate")) for row in rows) / len(rows) if rows else 0.0
    return {
        "totalTeams": len(rows),
        "avgUtilization": f"{average:.2f}%",
    }


_CALCULATORS: Dict[str, Callable[[List[Row], int], Metrics]] = {
    ReportType.APPOINTMENTS.value: lambda rows, _: calculate_appointment_metrics(rows),
    ReportType.TIV.value: lambda rows, _: calculate_tiv_metrics(rows),
    ReportType.ACCELERATIONS.value: lambda rows, _: calculate_acceleration_metrics(rows),
    ReportType.TEAM_ACTIVITY.value: calculate_team_activity_metrics,
    ReportType.CAPACITY.value: lambda rows, _: calculate_capacity_metrics(rows),
}


def calculate_metrics(report_type: str, rows: List[Row], total_users: int = 0) -> Metrics:
    """Metrics for ``report_type``; an unknown type has none."""
    calculator = _CALCULATORS.get(getattr(report_type, "value", report_type))
    if calculator is None:
        return {}
    return calculator(rows, total_users)
