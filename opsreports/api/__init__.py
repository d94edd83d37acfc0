"""HTTP routers for the reporting engine."""

from .reports import router

__all__ = ["router"]
