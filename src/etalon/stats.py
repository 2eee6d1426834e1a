"""Descriptive statistics for benchmark samples.

The comparator judges a change by the median of each sample, which resists
the occasional slow observation caused by system noise. The spread figures
(CV and the count of IQR outliers) are reported next to each comparison so
a reader can tell a real shift from a jittery machine.
"""

from __future__ import annotations

import math
import statistics
from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class DescriptiveStats:
    """Summary statistics for a sample."""

    n: int
    mean: float
    median: float
    stdev: float
    min: float
    max: float
    q1: float  # 25th percentile
    q3: float  # 75th percentile
    cv: float  # coefficient of variation (stdev/mean)

    @property
    def iqr(self) -> float:
        return self.q3 - self.q1


def describe(values: Sequence[float]) -> DescriptiveStats:
    """Compute descriptive statistics for a sample.

    Stdev and CV are 0.0 for a single observation. A zero mean with spread
    gives an infinite CV; a sample of all zeros has CV 0.0.

    Raises:
        ValueError: If *values* is empty.
    """
    if not values:
        raise ValueError("Cannot describe an empty sample")

    ordered = sorted(values)
    n = len(ordered)
    mean = statistics.mean(ordered)

    stdev = statistics.stdev(ordered) if n >= 2 else 0.0
    if stdev == 0:
        cv = 0.0
    elif mean == 0:
        cv = float("inf")
    else:
        cv = stdev / mean

    return DescriptiveStats(
        n=n,
        mean=mean,
        median=statistics.median(ordered),
        stdev=stdev,
        min=ordered[0],
        max=ordered[-1],
        q1=_percentile(ordered, 0.25),
        q3=_percentile(ordered, 0.75),
        cv=cv,
    )


def _percentile(ordered: Sequence[float], p: float) -> float:
    """Linear-interpolated percentile of an already sorted sequence.

    Matches ``numpy.percentile(..., method="linear")``.
    """
    if len(ordered) == 1:
        return ordered[0]
    pos = (len(ordered) - 1) * p
    lo = math.floor(pos)
    hi = math.ceil(pos)
    if lo == hi:
        return ordered[lo]
    frac = pos - lo
    return ordered[lo] + (ordered[hi] - ordered[lo]) * frac


def detect_outliers(values: Sequence[float], *, factor: float = 1.5) -> list[bool]:
    """Flag values outside ``[Q1 - factor*IQR, Q3 + factor*IQR]``.

    Samples with fewer than 4 values have no meaningful quartiles and are
    never flagged.
    """
    if len(values) < 4:
        return [False] * len(values)
    ordered = sorted(values)
    q1 = _percentile(ordered, 0.25)
    q3 = _percentile(ordered, 0.75)
    fence = factor * (q3 - q1)
    return [v < q1 - fence or v > q3 + fence for v in values]


def relative_delta(baseline: float, candidate: float) -> float:
    """Return ``(candidate - baseline) / baseline``, or NaN for a zero baseline."""
    if baseline == 0:
        return float("nan")
    return (candidate - baseline) / baseline
