"""Reporting and analytics engine for the operations console."""

__version__ = "1.0.0"
