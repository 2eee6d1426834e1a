"""Tests for etalon.runner: command and Criterion runner adapters."""

from __future__ import annotations

import json
import subprocess
import tempfile
import unittest
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

from etalon.errors import RunnerFailure
from etalon.runner import (
    CommandRunner,
    CriterionRunner,
    load_criterion_baseline,
    parse_measurements,
)


def _write_criterion_bench(
    criterion_dir: Path,
    rel: str,
    tag: str,
    full_id: str,
    iters: list[float],
    times: list[float],
) -> None:
    bench_dir = criterion_dir / rel / tag
    bench_dir.mkdir(parents=True, exist_ok=True)
    (bench_dir / "benchmark.json").write_text(
        json.dumps({"group_id": rel.split("/")[0], "full_id": full_id})
    )
    (bench_dir / "sample.json").write_text(
        json.dumps({"sampling_mode": "Linear", "iters": iters, "times": times})
    )


class TestParseMeasurements(unittest.TestCase):
    """Tests for parse_measurements()."""

    def test_whole_document(self) -> None:
        text = json.dumps({"unit": "us", "benchmarks": {"a": [1, 2], "b": [3]}})
        ms = parse_measurements(text, label="x")
        self.assertEqual(ms.unit, "us")
        self.assertEqual(ms.samples["a"].values, (1.0, 2.0))

    def test_last_json_line_after_chatter(self) -> None:
        text = 'Compiling foo\nRunning benches\n{"benchmarks": {"a": [5.0]}}\n'
        ms = parse_measurements(text, label="x")
        self.assertEqual(ms.samples["a"].values, (5.0,))
        self.assertEqual(ms.unit, "ns")

    def test_no_document(self) -> None:
        with self.assertRaises(RunnerFailure) as ctx:
            parse_measurements("just text", label="x")
        self.assertEqual(ctx.exception.output, "just text")

    def test_missing_benchmarks(self) -> None:
        with self.assertRaises(RunnerFailure):
            parse_measurements('{"results": []}', label="x")

    def test_invalid_sample(self) -> None:
        with self.assertRaises(RunnerFailure):
            parse_measurements('{"benchmarks": {"a": []}}', label="x")
        with self.assertRaises(RunnerFailure):
            parse_measurements('{"benchmarks": {"a": [-1]}}', label="x")


class TestCommandRunner(unittest.TestCase):
    """Tests for CommandRunner."""

    def test_substitutes_placeholders_quoted(self) -> None:
        runner = CommandRunner("bench --suite {suite} --rev {revision}")
        self.assertEqual(
            runner.build_command("abc 123", "lookup"),
            "bench --suite lookup --rev 'abc 123'",
        )

    def test_empty_command_rejected(self) -> None:
        with self.assertRaises(ValueError):
            CommandRunner("  ")

    def test_runs_real_shell_command(self) -> None:
        doc = json.dumps({"benchmarks": {"lookup": [1.0, 2.0, 3.0]}})
        runner = CommandRunner(f"echo '{doc}'")
        with tempfile.TemporaryDirectory() as tmpdir:
            ms = runner.run_suite("deadbeef", "lookup", Path(tmpdir))
        self.assertEqual(ms.samples["lookup"].median, 2.0)
        self.assertEqual(ms.revision, "deadbeef")
        self.assertEqual(ms.suite, "lookup")

    def test_runs_in_workdir(self) -> None:
        runner = CommandRunner("cat measurements.json")
        with tempfile.TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / "measurements.json").write_text('{"benchmarks": {"x": [4]}}')
            ms = runner.run_suite("r", "s", Path(tmpdir))
        self.assertEqual(ms.samples["x"].values, (4.0,))

    def test_nonzero_exit_carries_output(self) -> None:
        runner = CommandRunner("echo building; echo 'error: boom' >&2; exit 101")
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(RunnerFailure) as ctx:
                runner.run_suite("r", "s", Path(tmpdir))
        self.assertIn("101", str(ctx.exception))
        self.assertIn("building", ctx.exception.output)
        self.assertIn("error: boom", ctx.exception.output)


class TestLoadCriterionBaseline(unittest.TestCase):
    """Tests for load_criterion_baseline()."""

    def test_imports_per_iteration_times(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            _write_criterion_bench(
                root, "lookup/dict", "before", "lookup/dict", [1, 2, 4], [100, 220, 400]
            )
            _write_criterion_bench(root, "parse", "before", "parse", [10], [50])
            # Another tag and Criterion's own "new" directory are ignored.
            _write_criterion_bench(root, "parse", "after", "parse", [1], [999])
            _write_criterion_bench(root, "parse", "new", "parse", [1], [999])

            ms = load_criterion_baseline(root, "before")

        self.assertEqual(sorted(ms.samples), ["lookup/dict", "parse"])
        self.assertEqual(ms.samples["lookup/dict"].values, (100.0, 110.0, 100.0))
        self.assertEqual(ms.samples["parse"].values, (5.0,))
        self.assertEqual(ms.unit, "ns")

    def test_missing_tag(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            _write_criterion_bench(Path(tmpdir), "parse", "after", "parse", [1], [1])
            with self.assertRaises(RunnerFailure):
                load_criterion_baseline(Path(tmpdir), "before")

    def test_corrupt_sample(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            _write_criterion_bench(root, "parse", "before", "parse", [1], [1])
            (root / "parse" / "before" / "sample.json").write_text("{oops")
            with self.assertRaises(RunnerFailure):
                load_criterion_baseline(root, "before")


class TestCriterionRunner(unittest.TestCase):
    """Tests for CriterionRunner with cargo mocked."""

    def test_build_command(self) -> None:
        runner = CriterionRunner(tag="etalon", extra_args=["--features", "bench"])
        self.assertEqual(
            runner.build_command("lookup_benches"),
            [
                "cargo",
                "bench",
                "--bench",
                "lookup_benches",
                "--features",
                "bench",
                "--",
                "--noplot",
                "--save-baseline",
                "etalon",
            ],
        )

    @patch("etalon.runner.subprocess.run")
    def test_runs_cargo_and_imports(self, mock_run: MagicMock) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            workdir = Path(tmpdir)
            criterion_dir = workdir / "target" / "criterion"

            def fake_cargo(cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
                _write_criterion_bench(criterion_dir, "lookup", "etalon", "lookup", [2], [300])
                return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

            mock_run.side_effect = fake_cargo
            ms = CriterionRunner().run_suite("abc", "lookup_benches", workdir)

        self.assertEqual(ms.samples["lookup"].values, (150.0,))
        self.assertEqual(ms.revision, "abc")
        self.assertEqual(ms.suite, "lookup_benches")
        self.assertEqual(mock_run.call_args.kwargs["cwd"], str(workdir))

    @patch("etalon.runner.subprocess.run")
    def test_clear_failure_is_runner_failure(self, mock_run: MagicMock) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            workdir = Path(tmpdir)
            _write_criterion_bench(
                workdir / "target" / "criterion", "lookup", "etalon", "lookup", [1], [1]
            )
            # Patch rmtree only around the call: it is the global shutil.rmtree,
            # which TemporaryDirectory cleanup also uses.
            with patch(
                "etalon.runner.shutil.rmtree", side_effect=PermissionError("read-only")
            ), self.assertRaises(RunnerFailure) as ctx:
                CriterionRunner().run_suite("abc", "lookup_benches", workdir)
        self.assertIn("read-only", str(ctx.exception))
        mock_run.assert_not_called()

    @patch("etalon.runner.subprocess.run")
    def test_previous_baseline_cleared(self, mock_run: MagicMock) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            workdir = Path(tmpdir)
            criterion_dir = workdir / "target" / "criterion"
            _write_criterion_bench(criterion_dir, "removed", "etalon", "removed", [1], [1])

            def fake_cargo(cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
                _write_criterion_bench(criterion_dir, "kept", "etalon", "kept", [1], [5])
                return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

            mock_run.side_effect = fake_cargo
            ms = CriterionRunner().run_suite("abc", "suite", workdir)

        self.assertEqual(sorted(ms.samples), ["kept"])

    @patch("etalon.runner.subprocess.run")
    def test_cargo_failure(self, mock_run: MagicMock) -> None:
        mock_run.return_value = subprocess.CompletedProcess(
            [], 101, stdout="", stderr="error[E0425]: cannot find value"
        )
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(RunnerFailure) as ctx:
                CriterionRunner().run_suite("abc", "suite", Path(tmpdir))
        self.assertIn("E0425", ctx.exception.output)

    @patch("etalon.runner.subprocess.run", side_effect=FileNotFoundError("cargo"))
    def test_cargo_missing(self, mock_run: MagicMock) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(RunnerFailure):
                CriterionRunner().run_suite("abc", "suite", Path(tmpdir))
