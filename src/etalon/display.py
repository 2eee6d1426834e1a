"""Terminal rendering of comparison reports.

``render`` is pure and deterministic: the same report always produces the
same text. Every entry is listed, and the last line is always
``verdict: <ok|inconclusive|regression>`` so a CI step can grep for it.
"""

from __future__ import annotations

import math

from etalon.compare import Change, ComparisonEntry, Report

_TIME_UNITS = {"ns": 1e-9, "us": 1e-6, "µs": 1e-6, "ms": 1e-3, "s": 1.0}

_STATUS_LABELS = {
    Change.REGRESSED: "REGRESSED",
    Change.IMPROVED: "improved",
    Change.UNCHANGED: "unchanged",
    Change.INCONCLUSIVE: "inconclusive",
}


def verdict_line(report: Report) -> str:
    return f"verdict: {report.verdict.value}"


# ---------------------------------------------------------------------------
# Value formatting
# ---------------------------------------------------------------------------


def _format_time(seconds: float, precision: int = 2) -> str:
    """Format a time value with adaptive units."""
    if seconds < 1e-6:
        return f"{seconds * 1e9:.{precision}f}ns"
    if seconds < 1e-3:
        return f"{seconds * 1e6:.{precision}f}µs"
    if seconds < 1:
        return f"{seconds * 1e3:.{precision}f}ms"
    return f"{seconds:.{precision}f}s"


def format_value(value: float, unit: str) -> str:
    """Format a median in its unit; time units are rescaled for readability."""
    scale = _TIME_UNITS.get(unit)
    if scale is not None:
        return _format_time(value * scale)
    return f"{value:.4g} {unit}".rstrip()


def format_pct(value: float, precision: int = 1) -> str:
    """Format a percentage with sign."""
    if math.isnan(value):
        return "N/A"
    sign = "+" if value >= 0 else ""
    return f"{sign}{value:.{precision}f}%"


def entry_notes(entry: ComparisonEntry) -> str:
    """Informational markers for an entry; they never affect its status."""
    notes = ["noisy"] if entry.noisy else []
    if entry.outliers:
        notes.append(f"{entry.outliers} outlier" + ("s" if entry.outliers > 1 else ""))
    return ", ".join(notes)


def _row(entry: ComparisonEntry, unit: str) -> list[str]:
    return [
        entry.identifier,
        format_value(entry.baseline_median, unit),
        format_value(entry.candidate_median, unit),
        format_pct(entry.delta_pct),
        _STATUS_LABELS[entry.status],
        entry_notes(entry),
    ]


def _table(headers: list[str], rows: list[list[str]]) -> list[str]:
    # Identifier and status columns are left-aligned, numbers right-aligned.
    right = {1, 2, 3}
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    def fmt(cells: list[str]) -> str:
        parts = [
            c.rjust(widths[i]) if i in right else c.ljust(widths[i]) for i, c in enumerate(cells)
        ]
        return "  ".join(parts).rstrip()

    lines = [fmt(headers), "─" * (sum(widths) + 2 * (len(widths) - 1))]
    lines.extend(fmt(row) for row in rows)
    return lines


# ---------------------------------------------------------------------------
# Report rendering
# ---------------------------------------------------------------------------


def render(report: Report) -> str:
    """Render *report* as human-readable text ending with the verdict line."""
    title = f"{report.baseline_label} vs {report.candidate_label}"
    lines: list[str] = [title, "=" * len(title)]
    lines.append(f"Threshold: ±{report.threshold * 100:g}%")
    lines.append("")

    if report.entries:
        headers = [
            "Benchmark",
            report.baseline_label,
            report.candidate_label,
            "Change",
            "Status",
            "",
        ]
        lines.extend(_table(headers, [_row(e, report.unit) for e in report.entries]))
    else:
        lines.append("No benchmarks in common.")

    if report.added:
        lines.append("")
        lines.append(f"Added in {report.candidate_label} (not compared):")
        lines.extend(f"  + {name}" for name in report.added)
    if report.removed:
        lines.append("")
        lines.append(f"Removed in {report.candidate_label} (not compared):")
        lines.extend(f"  - {name}" for name in report.removed)

    lines.append("")
    lines.append(
        f"Compared: {len(report.entries)}  "
        f"regressed: {report.count(Change.REGRESSED)}  "
        f"improved: {report.count(Change.IMPROVED)}  "
        f"unchanged: {report.count(Change.UNCHANGED)}  "
        f"inconclusive: {report.count(Change.INCONCLUSIVE)}"
    )
    lines.append(verdict_line(report))
    return "\n".join(lines)
