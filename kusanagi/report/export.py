"""Report export formats: full JSON and a two-column CSV summary."""

from __future__ import annotations

import csv
import io
import json
from enum import StrEnum

from kusanagi.models.report import ClusterReport


class ExportFormat(StrEnum):
    JSON = "json"
    CSV = "csv"

    @property
    def media_type(self) -> str:
        return "application/json" if self is ExportFormat.JSON else "text/csv"


def export_json(report: ClusterReport) -> str:
    return json.dumps(report.to_dict(), indent=2)


def export_csv(report: ClusterReport) -> str:
    """Summary rows only; per-object detail is available in the JSON export."""
    summary = report.summary
    rows = [
        ("Generated At", report.generated_at),
        ("Cluster Name", report.cluster_name),
        ("Total Nodes", summary.total_nodes),
        ("Ready Nodes", summary.ready_nodes),
        ("Total Apps", summary.total_apps),
        ("Healthy Apps", summary.healthy_apps),
        ("Unhealthy Apps", summary.unhealthy_apps),
        ("Total Alerts", summary.total_alerts),
        ("Critical Alerts", summary.critical_alerts),
        ("Warning Alerts", summary.warning_alerts),
        ("Total Events", summary.total_events),
        ("Warning Events", summary.warning_events),
        ("Total PVCs", summary.total_pvcs),
    ]
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(("Metric", "Value"))
    writer.writerows(rows)
    return buffer.getvalue()


def export_report(report: ClusterReport, fmt: ExportFormat) -> str:
    if fmt is ExportFormat.CSV:
        return export_csv(report)
    return export_json(report)


def export_filename(report: ClusterReport, fmt: ExportFormat) -> str:
    stamp = report.generated_at[:19].replace(":", "").replace("-", "")
    return f"cluster-report-{report.cluster_name}-{stamp}.{fmt.value}"
