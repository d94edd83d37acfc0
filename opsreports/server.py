from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable, Optional

from fastapi import FastAPI

from .api import router as reports_router
from .models import DomainSnapshot
from .services import ReportEngine
from .storage import JsonFileStore, KeyValueStore


BASE_DIR = Path(__file__).resolve().parent
DATA_DIR = Path(os.getenv("REPORTS_DATA_DIR", str(BASE_DIR.parent / "data")))
STORE_PATH = Path(os.getenv("REPORTS_STORE_FILE", str(DATA_DIR / "store.json")))
LOG_LEVEL = os.getenv("REPORTS_LOG_LEVEL", "INFO").upper()

# Key under which the console persists its domain state.
CONSOLE_STATE_KEY = "calendar-tool-storage"

SnapshotProvider = Callable[[], DomainSnapshot]

logging.getLogger("opsreports").setLevel(LOG_LEVEL)


def _persisted_snapshot(store: KeyValueStore) -> SnapshotProvider:
    def _load() -> DomainSnapshot:
        return DomainSnapshot.from_persisted_state(store.get(CONSOLE_STATE_KEY))
    return _load


def create_app(
    store: Optional[KeyValueStore] = None,
    snapshot_provider: Optional[SnapshotProvider] = None,
) -> FastAPI:
    """Build the app around one explicitly constructed store."""
    store = store if store is not None else JsonFileStore(STORE_PATH)

    app = FastAPI(title="Operations Console Reports")
    app.state.store = store
    app.state.report_engine = ReportEngine(store)
    app.state.snapshot_provider = snapshot_provider or _persisted_snapshot(store)
    app.include_router(reports_router)

    @app.get("/healthz")
    async def healthcheck():
        return {"status": "ok"}

    return app


app = create_app()


__all__ = ["app", "create_app"]
