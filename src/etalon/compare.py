"""Regression detection between two measurement sets.

Benchmarks are matched by identifier. For each benchmark present in both
sets, the relative change of the median is classified against a fixed
threshold::

    delta = (median(candidate) - median(baseline)) / median(baseline)

    delta >= +threshold  → REGRESSED
    delta <= -threshold  → IMPROVED
    otherwise            → UNCHANGED
    baseline median == 0 → INCONCLUSIVE (delta undefined)

Both boundaries are inclusive. Benchmarks present on only one side are
listed as added or removed and never count towards the verdict.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass

from etalon.errors import MissingBaseline, MissingCandidate, NotFound, UnitMismatch
from etalon.logging import get_logger
from etalon.results import MeasurementSet, Sample
from etalon.stats import detect_outliers, relative_delta
from etalon.store import MeasurementStore

log = get_logger("compare")

# Relative tolerance when testing a delta against the threshold, so a change
# of exactly 5% is not lost to binary rounding of 0.05.
_BOUNDARY_REL_TOL = 1e-9


class Change(enum.Enum):
    """Classification of one benchmark's change."""

    IMPROVED = "improved"
    UNCHANGED = "unchanged"
    REGRESSED = "regressed"
    INCONCLUSIVE = "inconclusive"


class Verdict(enum.Enum):
    """Summary outcome of a comparison."""

    OK = "ok"
    INCONCLUSIVE = "inconclusive"
    REGRESSION = "regression"


# ---------------------------------------------------------------------------
# Result structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ComparisonEntry:
    """One benchmark compared between baseline and candidate."""

    identifier: str
    baseline: Sample
    candidate: Sample
    baseline_median: float
    candidate_median: float
    delta: float  # NaN when INCONCLUSIVE
    status: Change
    noisy: bool = False  # either side's CV above the noise threshold
    outliers: int = 0  # IQR outliers across both samples

    @property
    def significant(self) -> bool:
        """True if the change crossed the threshold in either direction."""
        return self.status in (Change.IMPROVED, Change.REGRESSED)

    @property
    def delta_pct(self) -> float:
        return self.delta * 100


@dataclass(frozen=True)
class Report:
    """Complete, immutable result of one comparison."""

    baseline_label: str
    candidate_label: str
    threshold: float
    entries: tuple[ComparisonEntry, ...]
    added: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()
    unit: str = "ns"

    @property
    def verdict(self) -> Verdict:
        """REGRESSION if any entry regressed, else INCONCLUSIVE if any entry
        is inconclusive, else OK."""
        statuses = {e.status for e in self.entries}
        if Change.REGRESSED in statuses:
            return Verdict.REGRESSION
        if Change.INCONCLUSIVE in statuses:
            return Verdict.INCONCLUSIVE
        return Verdict.OK

    def count(self, status: Change) -> int:
        return sum(1 for e in self.entries if e.status is status)

    @property
    def regressions(self) -> list[ComparisonEntry]:
        return [e for e in self.entries if e.status is Change.REGRESSED]


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def _at_least(value: float, bound: float) -> bool:
    return value >= bound or math.isclose(value, bound, rel_tol=_BOUNDARY_REL_TOL)


def classify(delta: float, threshold: float) -> Change:
    """Classify a relative change against *threshold* (inclusive bounds)."""
    if math.isnan(delta):
        return Change.INCONCLUSIVE
    if _at_least(delta, threshold):
        return Change.REGRESSED
    if _at_least(-delta, threshold):
        return Change.IMPROVED
    return Change.UNCHANGED


def _check_threshold(threshold: float) -> None:
    if not (threshold > 0 and math.isfinite(threshold)):
        raise ValueError(f"Threshold must be a positive fraction (got {threshold!r})")


def _sort_key(entry: ComparisonEntry) -> tuple[int, float, str]:
    # Largest |delta| first; undefined deltas after every numeric one.
    if math.isnan(entry.delta):
        return (1, 0.0, entry.identifier)
    return (0, -abs(entry.delta), entry.identifier)


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------


def compare_sets(
    baseline: MeasurementSet,
    candidate: MeasurementSet,
    threshold: float,
    *,
    noise_threshold: float = 0.10,
) -> Report:
    """Compare two in-memory measurement sets.

    Args:
        baseline: Set from the reference revision.
        candidate: Set from the revision under evaluation.
        threshold: Relative change (0.05 = 5%) at which a benchmark is
            flagged as regressed or improved.
        noise_threshold: CV above which an entry is marked noisy.

    Returns:
        Report with entries ordered by descending |delta|.

    Raises:
        ValueError: If *threshold* is not a positive finite number.
        UnitMismatch: If the two sets were recorded in different units.
    """
    _check_threshold(threshold)
    if baseline.unit != candidate.unit:
        raise UnitMismatch(baseline.unit, candidate.unit)

    common = baseline.identifiers & candidate.identifiers
    added = sorted(candidate.identifiers - baseline.identifiers)
    removed = sorted(baseline.identifiers - candidate.identifiers)

    entries: list[ComparisonEntry] = []
    for identifier in common:
        base = baseline.samples[identifier]
        cand = candidate.samples[identifier]
        base_stats = base.stats
        cand_stats = cand.stats
        delta = relative_delta(base_stats.median, cand_stats.median)
        entries.append(
            ComparisonEntry(
                identifier=identifier,
                baseline=base,
                candidate=cand,
                baseline_median=base_stats.median,
                candidate_median=cand_stats.median,
                delta=delta,
                status=classify(delta, threshold),
                noisy=base_stats.cv > noise_threshold or cand_stats.cv > noise_threshold,
                outliers=sum(detect_outliers(base.values)) + sum(detect_outliers(cand.values)),
            )
        )
    entries.sort(key=_sort_key)

    report = Report(
        baseline_label=baseline.label,
        candidate_label=candidate.label,
        threshold=threshold,
        entries=tuple(entries),
        added=tuple(added),
        removed=tuple(removed),
        unit=baseline.unit,
    )
    log.info(
        "Compared %d benchmarks (%d added, %d removed): %s",
        len(entries),
        len(added),
        len(removed),
        report.verdict.value,
    )
    return report


def compare(
    store: MeasurementStore,
    baseline_label: str,
    candidate_label: str,
    threshold: float,
    *,
    noise_threshold: float = 0.10,
) -> Report:
    """Compare two sets held in *store*.

    Raises:
        MissingBaseline: If *baseline_label* is not stored.
        MissingCandidate: If *candidate_label* is not stored.
        UnitMismatch: If the two sets were recorded in different units.
        ValueError: If *threshold* is not a positive finite number.
    """
    _check_threshold(threshold)
    try:
        baseline = store.get(baseline_label)
    except NotFound:
        raise MissingBaseline(baseline_label) from None
    try:
        candidate = store.get(candidate_label)
    except NotFound:
        raise MissingCandidate(candidate_label) from None
    return compare_sets(baseline, candidate, threshold, noise_threshold=noise_threshold)
