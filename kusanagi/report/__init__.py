"""Cluster report generation and export."""

from kusanagi.report.aggregator import (
    OPTIONAL_SOURCES,
    REQUIRED_SOURCES,
    ReportAggregator,
    ReportGenerationError,
)
from kusanagi.report.export import ExportFormat, export_csv, export_json, export_report

__all__ = [
    "OPTIONAL_SOURCES",
    "REQUIRED_SOURCES",
    "ExportFormat",
    "ReportAggregator",
    "ReportGenerationError",
    "export_csv",
    "export_json",
    "export_report",
]
