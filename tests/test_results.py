"""Tests for etalon.results: samples and measurement sets."""

from __future__ import annotations

import json
import math
import unittest

from etalon.results import MeasurementSet, Sample


class TestSample(unittest.TestCase):
    """Tests for Sample invariants."""

    def test_values_become_float_tuple(self) -> None:
        s = Sample.of([1, 2, 3])
        self.assertEqual(s.values, (1.0, 2.0, 3.0))
        self.assertEqual(len(s), 3)

    def test_empty_rejected(self) -> None:
        with self.assertRaises(ValueError):
            Sample.of([])

    def test_negative_rejected(self) -> None:
        with self.assertRaises(ValueError):
            Sample.of([1.0, -0.5])

    def test_nan_and_inf_rejected(self) -> None:
        with self.assertRaises(ValueError):
            Sample.of([math.nan])
        with self.assertRaises(ValueError):
            Sample.of([math.inf])

    def test_zero_allowed(self) -> None:
        self.assertEqual(Sample.of([0.0, 0.0]).median, 0.0)

    def test_median_resists_outlier(self) -> None:
        s = Sample.of([100.0, 101.0, 99.0, 5000.0, 100.0])
        self.assertEqual(s.median, 100.0)

    def test_order_preserved(self) -> None:
        self.assertEqual(Sample.of([3, 1, 2]).values, (3.0, 1.0, 2.0))


class TestMeasurementSet(unittest.TestCase):
    """Tests for MeasurementSet serialization."""

    def test_to_dict_shape(self) -> None:
        ms = MeasurementSet.from_values(
            "before",
            {"b": [2.0], "a": [1.0, 1.5]},
            created_at="2026-10-16T09:00:00+00:00",
            revision="abc123",
            suite="lookup",
        )
        d = ms.to_dict()
        self.assertEqual(d["label"], "before")
        self.assertEqual(d["revision"], "abc123")
        self.assertEqual(d["suite"], "lookup")
        self.assertEqual(d["unit"], "ns")
        self.assertEqual(list(d["samples"]), ["a", "b"])
        self.assertEqual(d["samples"]["a"], [1.0, 1.5])

    def test_json_roundtrip_is_equal(self) -> None:
        ms = MeasurementSet.from_values("after", {"x": [0.1, 0.2, 0.30000000000000004]})
        restored = MeasurementSet.from_json(ms.to_json())
        self.assertEqual(restored, ms)

    def test_from_dict_defaults(self) -> None:
        ms = MeasurementSet.from_dict({"label": "x", "samples": {"a": [1]}})
        self.assertEqual(ms.unit, "ns")
        self.assertEqual(ms.revision, "")
        self.assertEqual(ms.samples["a"].values, (1.0,))

    def test_from_dict_invalid_sample(self) -> None:
        with self.assertRaises(ValueError):
            MeasurementSet.from_dict({"label": "x", "samples": {"a": []}})

    def test_created_at_defaults_to_utc_timestamp(self) -> None:
        ms = MeasurementSet(label="x")
        self.assertTrue(ms.created_at.endswith("+00:00"))

    def test_to_json_is_valid_json(self) -> None:
        ms = MeasurementSet.from_values("x", {"a": [1.0]})
        self.assertEqual(json.loads(ms.to_json())["samples"], {"a": [1.0]})

    def test_identifiers(self) -> None:
        ms = MeasurementSet.from_values("x", {"a": [1.0], "b": [2.0]})
        self.assertEqual(ms.identifiers, {"a", "b"})
