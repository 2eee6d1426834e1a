"""Measurement data structures and serialization.

Hierarchy::

    MeasurementSet (one run of a suite, stored under a label)
      → samples: dict[str, Sample]   (benchmark identifier → observations)
        → values: tuple[float, ...]

A stored set is one JSON document::

    {
      "label": "before",
      "created_at": "2026-10-16T09:30:00+00:00",
      "revision": "master",
      "suite": "lookup_benches",
      "unit": "ns",
      "samples": {"parse_small": [101.0, 99.5, 100.2]}
    }
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from etalon.stats import DescriptiveStats, describe


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


# ---------------------------------------------------------------------------
# Sample
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Sample:
    """Ordered observations (durations or throughputs) for one benchmark."""

    values: tuple[float, ...]

    def __post_init__(self) -> None:
        values = tuple(float(v) for v in self.values)
        if not values:
            raise ValueError("A sample needs at least one observation")
        for v in values:
            if math.isnan(v) or math.isinf(v) or v < 0:
                raise ValueError(f"Sample values must be finite and non-negative (got {v!r})")
        object.__setattr__(self, "values", values)

    @classmethod
    def of(cls, values: Iterable[float]) -> Sample:
        """Build a sample from any iterable of numbers."""
        return cls(tuple(values))

    def __len__(self) -> int:
        return len(self.values)

    @property
    def median(self) -> float:
        """Central tendency used for comparison."""
        return self.stats.median

    @property
    def stats(self) -> DescriptiveStats:
        return describe(self.values)


# ---------------------------------------------------------------------------
# MeasurementSet
# ---------------------------------------------------------------------------


@dataclass
class MeasurementSet:
    """All samples produced by one run of a benchmark suite."""

    label: str
    samples: dict[str, Sample] = field(default_factory=dict)
    created_at: str = field(default_factory=_utc_now)
    revision: str = ""
    suite: str = ""
    unit: str = "ns"

    @classmethod
    def from_values(
        cls,
        label: str,
        values: Mapping[str, Iterable[float]],
        **kwargs: Any,
    ) -> MeasurementSet:
        """Build a set from identifier → raw observations."""
        return cls(
            label=label,
            samples={name: Sample.of(obs) for name, obs in values.items()},
            **kwargs,
        )

    @property
    def identifiers(self) -> set[str]:
        return set(self.samples)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {
            "label": self.label,
            "created_at": self.created_at,
            "revision": self.revision,
            "suite": self.suite,
            "unit": self.unit,
            "samples": {name: list(s.values) for name, s in sorted(self.samples.items())},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MeasurementSet:
        """Deserialize from a dict.

        Raises:
            ValueError: If a sample violates the sample invariants.
            KeyError: If ``label`` is missing.
            TypeError: If the document or its ``samples`` is not a mapping.
        """
        if not isinstance(data, dict):
            raise TypeError(f"Measurement set must be a mapping, got {type(data).__name__}")
        samples = data.get("samples", {})
        if not isinstance(samples, dict):
            raise TypeError(f"'samples' must be a mapping, got {type(samples).__name__}")
        return cls(
            label=data["label"],
            samples={name: Sample.of(obs) for name, obs in samples.items()},
            created_at=data.get("created_at", ""),
            revision=data.get("revision", ""),
            suite=data.get("suite", ""),
            unit=data.get("unit", "ns"),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2) + "\n"

    @classmethod
    def from_json(cls, text: str) -> MeasurementSet:
        return cls.from_dict(json.loads(text))
