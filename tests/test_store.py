"""Tests for etalon.store: label-addressed measurement persistence."""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from etalon_test_helpers import make_set

from etalon.errors import NotFound, StorageFailure
from etalon.store import MeasurementStore, validate_label


class StoreTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name) / "store"
        self.store = MeasurementStore(self.root)

    def tearDown(self) -> None:
        self._tmp.cleanup()


class TestPutGet(StoreTestCase):
    """Tests for put/get semantics."""

    def test_put_then_get_returns_equal_set(self) -> None:
        ms = make_set("before", {"parse_small": [100.0, 102.0, 98.0]})
        self.store.put("before", ms)
        self.assertEqual(self.store.get("before"), ms)

    def test_put_overwrites(self) -> None:
        first = make_set("before", {"a": [1.0]})
        second = make_set("before", {"b": [2.0, 3.0]})
        self.store.put("before", first)
        self.store.put("before", second)
        got = self.store.get("before")
        self.assertEqual(got, second)
        self.assertNotIn("a", got.samples)

    def test_put_stores_under_given_label(self) -> None:
        self.store.put("after", make_set("whatever", {"a": [1.0]}))
        self.assertEqual(self.store.get("after").label, "after")

    def test_put_creates_directory(self) -> None:
        self.assertFalse(self.root.exists())
        self.store.put("x", make_set("x", {"a": [1.0]}))
        self.assertTrue((self.root / "x.json").is_file())

    def test_get_missing_raises_not_found(self) -> None:
        with self.assertRaises(NotFound) as ctx:
            self.store.get("nope")
        self.assertEqual(ctx.exception.label, "nope")

    def test_get_corrupt_file_is_storage_failure(self) -> None:
        self.root.mkdir(parents=True)
        (self.root / "bad.json").write_text("{not json")
        with self.assertRaises(StorageFailure):
            self.store.get("bad")
        for text in ('{"label": "bad", "samples": [1, 2]}', "[1, 2]", '"bad"'):
            (self.root / "bad.json").write_text(text)
            with self.assertRaises(StorageFailure):
                self.store.get("bad")

    def test_get_invalid_sample_is_storage_failure(self) -> None:
        self.root.mkdir(parents=True)
        (self.root / "bad.json").write_text('{"label": "bad", "samples": {"a": [-1]}}')
        with self.assertRaises(StorageFailure):
            self.store.get("bad")

    def test_write_failure_leaves_label_absent(self) -> None:
        self.store.put("before", make_set("before", {"a": [1.0]}))
        with patch("etalon.store.os.replace", side_effect=OSError("disk full")):
            with self.assertRaises(StorageFailure):
                self.store.put("after", make_set("after", {"a": [2.0]}))
        self.assertEqual(list(self.store.list_labels()), ["before"])
        self.assertEqual(sorted(p.name for p in self.root.iterdir()), ["before.json"])

    def test_failed_overwrite_keeps_previous_set(self) -> None:
        original = make_set("before", {"a": [1.0]})
        self.store.put("before", original)
        with patch("etalon.store.os.replace", side_effect=OSError("disk full")):
            with self.assertRaises(StorageFailure):
                self.store.put("before", make_set("before", {"a": [9.0]}))
        self.assertEqual(self.store.get("before"), original)


class TestLabels(StoreTestCase):
    """Tests for list_labels, delete and membership."""

    def test_fresh_store_is_empty(self) -> None:
        self.assertEqual(list(self.store.list_labels()), [])

    def test_list_labels_sorted(self) -> None:
        for label in ("after", "before", "baseline-1.2"):
            self.store.put(label, make_set(label, {"a": [1.0]}))
        self.assertEqual(list(self.store.list_labels()), ["after", "baseline-1.2", "before"])

    def test_list_labels_is_restartable_and_live(self) -> None:
        view = self.store.list_labels()
        self.store.put("a", make_set("a", {"x": [1.0]}))
        self.assertEqual(list(view), ["a"])
        self.assertEqual(list(view), ["a"])
        self.store.put("b", make_set("b", {"x": [1.0]}))
        self.assertEqual(list(view), ["a", "b"])
        self.assertIn("b", view)

    def test_list_ignores_foreign_files(self) -> None:
        self.store.put("a", make_set("a", {"x": [1.0]}))
        (self.root / ".hidden.tmp").write_text("")
        (self.root / "notes.txt").write_text("")
        (self.root / "has space.json").write_text("{}")
        self.assertEqual(list(self.store.list_labels()), ["a"])

    def test_delete(self) -> None:
        self.store.put("a", make_set("a", {"x": [1.0]}))
        self.assertIn("a", self.store)
        self.store.delete("a")
        self.assertNotIn("a", self.store)
        with self.assertRaises(NotFound):
            self.store.delete("a")

    def test_stores_are_isolated(self) -> None:
        other = MeasurementStore(Path(self._tmp.name) / "other")
        self.store.put("a", make_set("a", {"x": [1.0]}))
        self.assertEqual(list(other.list_labels()), [])


class TestValidateLabel(unittest.TestCase):
    def test_accepts_typical_labels(self) -> None:
        for label in ("before", "after", "v1.2.3", "main_2026-10-16"):
            self.assertEqual(validate_label(label), label)

    def test_rejects_bad_labels(self) -> None:
        for label in ("", ".hidden", "a/b", "../x", "a b", "x\n"):
            with self.assertRaises(ValueError, msg=label):
                validate_label(label)
