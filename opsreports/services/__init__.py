"""Report services: generation, metrics, engine and persistence."""

from .metrics import calculate_metrics
from .report_data import ReportDataGenerator
from .report_engine import ReportEngine
from .report_service import (
    ReportPersistenceService,
    ReportServiceError,
    StorageWriteError,
    TemplateNotFoundError,
    TemplateValidationError,
)

__all__ = [
    "ReportDataGenerator",
    "ReportEngine",
    "ReportPersistenceService",
    "ReportServiceError",
    "StorageWriteError",
    "TemplateNotFoundError",
    "TemplateValidationError",
    "calculate_metrics",
]
