"""Shared pytest fixtures for the reporting engine test suite."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pandas as pd
import pytest
from fastapi.testclient import TestClient


# ── Domain data ──────────────────────────────────────────────────────────────

NOW = pd.Timestamp("2026-10-15 12:00:00")

TEAMS = [
    {"id": "t1", "name": "Alpha"},
    {"id": "t2", "name": "Bravo"},
    {"id": "t3", "name": "Empty"},
]

USERS = [
    {"id": "u1", "email": "ann@example.com", "teamId": "t1"},
    {"id": "u2", "email": "ben@example.com", "teamId": "t1"},
    {"id": "u3", "email": "cat@example.com", "teamId": "t2"},
    {"id": "u4", "email": "dan@example.com", "teamId": None},
]

EVENTS = [
    {
        "id": "e1", "orderId": "SO-1", "customerName": "Acme",
        "startTime": "2026-10-01T00:00:00", "endTime": "2026-10-01T01:00:00",
        "productType": "Fiber", "createdBy": "u1", "status": "confirmed",
        "changeTypes": ["Move", "Add"],
    },
    {
        "id": "e2", "orderId": "SO-2", "customerName": "Globex",
        "startTime": "2026-10-15T09:30:00", "endTime": "2026-10-15T10:30:00",
        "productType": "Copper", "createdBy": "u2",
    },
    {
        "id": "e3", "orderId": "SO-3", "customerName": "Initech",
        "startTime": "2026-10-31T23:59:59", "endTime": "2026-10-31T23:59:59",
        "productType": "Fiber", "createdBy": "u3", "status": "completed",
    },
    {
        "id": "e4", "orderId": "SO-4", "customerName": "Acme",
        "startTime": "2026-11-01T00:00:00", "endTime": "2026-11-01T01:00:00",
        "productType": "Fiber", "createdBy": "u1",
    },
    {
        "id": "e5", "orderId": "SO-5", "customerName": "Broken",
        "startTime": "not-a-date", "endTime": "",
        "productType": "Fiber", "createdBy": "u1",
    },
    {
        "id": "e6", "orderId": "SO-6", "customerName": "Acme",
        "startTime": "2026-09-30T23:59:59", "endTime": "2026-09-30T23:59:59",
        "productType": "Fiber", "createdBy": "u1",
    },
]

TIV_REQUESTS = [
    {"id": "r1", "customer_name": "Acme", "status": "APPROVED", "created_at": "2026-10-02T08:00:00",
     "product_type": "Fiber", "order_type": "New", "team_id": "t1"},
    {"id": "r2", "customer_name": "Globex", "status": "APPROVED", "created_at": "2026-10-03T08:00:00",
     "product_type": "Copper", "team_id": "t2"},
    {"id": "r3", "customer_name": "Initech", "status": "PENDING", "created_at": "2026-10-04T08:00:00",
     "product_type": "Fiber", "order_type": "Change", "team_id": "t1"},
    {"id": "r4", "customer_name": "Acme", "status": "PENDING", "created_at": "2026-10-20T08:00:00",
     "product_type": "Fiber", "team_id": "t2"},
    {"id": "r5", "customer_name": "Umbrella", "status": "REJECTED", "created_at": "2026-09-20T08:00:00",
     "product_type": "Fiber", "team_id": "t1"},
]

ACCELERATIONS = [
    {"id": "a1", "order_id": "SO-1", "customer_name": "Acme", "product_type": "Fiber",
     "reason": "Outage", "created_at": "2026-10-05T10:00:00", "team_id": "t1"},
    {"id": "a2", "order_id": "SO-2", "customer_name": "Acme", "product_type": "Fiber",
     "created_at": "2026-10-06T10:00:00", "team_id": "t2"},
    {"id": "a3", "order_id": "SO-3", "customer_name": "Globex", "product_type": "Copper",
     "reason": "VIP", "created_at": "2026-10-07T10:00:00", "team_id": "t1"},
]


class FakeClock:
    """Clock that moves forward one second per call."""

    def __init__(self, start: datetime = datetime(2026, 10, 1, 8, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


# ── Fixtures ─────────────────────────────────────────────────────────────────

@pytest.fixture
def now() -> pd.Timestamp:
    return NOW


@pytest.fixture
def snapshot():
    from opsreports.models import DomainSnapshot

    return DomainSnapshot(events=EVENTS, users=USERS, teams=TEAMS, product_types=[])


@pytest.fixture
def store():
    """Store pre-filled with the request collections, the way older writers left them."""
    from opsreports.storage import MemoryStore

    return MemoryStore({
        "tivRequests": json.dumps(TIV_REQUESTS),
        "accelerations": json.dumps(ACCELERATIONS),
    })


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def service(store, clock):
    from opsreports.services import ReportPersistenceService

    return ReportPersistenceService(store, clock=clock)


@pytest.fixture
def engine(store, service):
    from opsreports.services import ReportEngine

    return ReportEngine(store, persistence=service)


@pytest.fixture
def client(store):
    """A TestClient whose console state holds the sample snapshot."""
    from opsreports.server import CONSOLE_STATE_KEY, create_app

    store.set(CONSOLE_STATE_KEY, json.dumps({
        "state": {"events": EVENTS, "users": USERS, "teams": TEAMS, "productTypes": []},
        "version": 0,
    }))
    return TestClient(create_app(store=store), raise_server_exceptions=True)


@pytest.fixture
def user_headers():
    return {"X-User-Id": "u1"}
