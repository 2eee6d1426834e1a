"""Export comparison reports to JSON, CSV, and Markdown.

JSON carries the full report (including raw samples) for archiving next to
CI artifacts. CSV has one row per compared benchmark for spreadsheets.
Markdown is a summary table for pull-request comments; like the terminal
rendering it ends with the verdict line.
"""

from __future__ import annotations

import csv
import io
import json
import math
from typing import Any

from etalon.compare import Report
from etalon.display import entry_notes, format_pct, format_value, verdict_line

EXPORT_FORMATS = ("json", "csv", "markdown")


def _num(value: float) -> float | None:
    return None if math.isnan(value) else round(value, 6)


def report_to_dict(report: Report) -> dict[str, Any]:
    """Serialize a report to a JSON-compatible dict (NaN becomes null)."""
    return {
        "baseline": report.baseline_label,
        "candidate": report.candidate_label,
        "threshold": report.threshold,
        "unit": report.unit,
        "verdict": report.verdict.value,
        "entries": [
            {
                "id": e.identifier,
                "status": e.status.value,
                "significant": e.significant,
                "noisy": e.noisy,
                "outliers": e.outliers,
                "baseline_median": _num(e.baseline_median),
                "candidate_median": _num(e.candidate_median),
                "delta": _num(e.delta),
                "baseline_samples": list(e.baseline.values),
                "candidate_samples": list(e.candidate.values),
            }
            for e in report.entries
        ],
        "added": list(report.added),
        "removed": list(report.removed),
    }


def export_json(report: Report) -> str:
    return json.dumps(report_to_dict(report), indent=2) + "\n"


def export_csv(report: Report) -> str:
    """Export one row per compared benchmark.

    Columns:
        id, status, baseline_median, candidate_median, delta, noisy, outliers
    """
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(
        ["id", "status", "baseline_median", "candidate_median", "delta", "noisy", "outliers"]
    )
    for e in report.entries:
        writer.writerow(
            [
                e.identifier,
                e.status.value,
                f"{e.baseline_median:.6f}",
                f"{e.candidate_median:.6f}",
                "" if math.isnan(e.delta) else f"{e.delta:.6f}",
                e.noisy,
                e.outliers,
            ]
        )
    return output.getvalue()


def export_markdown(report: Report) -> str:
    """Export a Markdown summary suitable for a pull-request comment."""
    lines: list[str] = []
    lines.append(f"# Benchmarks: {report.baseline_label} vs {report.candidate_label}")
    lines.append("")
    lines.append(f"Threshold: ±{report.threshold * 100:g}%")
    lines.append("")

    if report.entries:
        lines.append(
            f"| Benchmark | {report.baseline_label} | {report.candidate_label} | Change | Status |"
        )
        lines.append("|---|---:|---:|---:|---|")
        for e in report.entries:
            status = e.status.value
            notes = entry_notes(e)
            if notes:
                status += f" ({notes})"
            lines.append(
                f"| `{e.identifier}` "
                f"| {format_value(e.baseline_median, report.unit)} "
                f"| {format_value(e.candidate_median, report.unit)} "
                f"| {format_pct(e.delta_pct)} "
                f"| {status} |"
            )
        lines.append("")

    if report.added:
        lines.append("**Added:** " + ", ".join(f"`{n}`" for n in report.added))
        lines.append("")
    if report.removed:
        lines.append("**Removed:** " + ", ".join(f"`{n}`" for n in report.removed))
        lines.append("")

    lines.append(verdict_line(report))
    return "\n".join(lines) + "\n"


def export_report(report: Report, fmt: str) -> str:
    """Dispatch to the exporter for *fmt* (one of :data:`EXPORT_FORMATS`)."""
    if fmt == "json":
        return export_json(report)
    if fmt == "csv":
        return export_csv(report)
    if fmt == "markdown":
        return export_markdown(report)
    raise ValueError(f"Unknown export format '{fmt}'. Choose from: {', '.join(EXPORT_FORMATS)}")
