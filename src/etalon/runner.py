"""Runner adapters: produce a measurement set for one checked-out revision.

The orchestrator only needs one capability, :class:`SuiteRunner`. Two
adapters ship with etalon:

- :class:`CommandRunner` runs any shell command that prints etalon's JSON
  measurement format on stdout.
- :class:`CriterionRunner` runs ``cargo bench`` and imports the baseline
  Criterion saves under ``target/criterion``.

Runs are never retried and have no internal timeout: benchmark runs are
slow, and the CI job running etalon owns the wall-clock limit.
"""

from __future__ import annotations

import json
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import Any, Protocol

from etalon.errors import RunnerFailure
from etalon.logging import get_logger
from etalon.results import MeasurementSet, Sample

log = get_logger("runner")


class SuiteRunner(Protocol):
    """Anything that can benchmark a suite in a checked-out tree."""

    def run_suite(self, revision: str, suite: str, workdir: Path) -> MeasurementSet:
        """Run *suite* in *workdir* (already at *revision*) and return its measurements.

        Raises:
            RunnerFailure: If the suite cannot be built or run.
        """
        ...


def _combined_output(proc: subprocess.CompletedProcess[str]) -> str:
    parts = [p for p in (proc.stdout, proc.stderr) if p]
    return "\n".join(parts)


# ---------------------------------------------------------------------------
# Generic command adapter
# ---------------------------------------------------------------------------


def parse_measurements(text: str, *, label: str) -> MeasurementSet:
    """Parse etalon's JSON measurement format.

    Format::

        {"unit": "ns", "benchmarks": {"parse_small": [101.2, 99.8, 100.4]}}

    The document may be the whole of *text* or its last line starting with
    ``{`` (so build chatter on stdout before it is tolerated).

    Raises:
        RunnerFailure: If no valid document is found.
    """
    data = _find_json_document(text)
    if data is None:
        raise RunnerFailure("Benchmark command printed no JSON measurement document", text)

    benchmarks = data.get("benchmarks")
    if not isinstance(benchmarks, dict) or not benchmarks:
        raise RunnerFailure("Measurement document has no 'benchmarks' mapping", text)

    try:
        samples = {str(name): Sample.of(values) for name, values in benchmarks.items()}
    except (TypeError, ValueError) as exc:
        raise RunnerFailure(f"Invalid benchmark sample: {exc}", text) from exc

    return MeasurementSet(label=label, samples=samples, unit=str(data.get("unit", "ns")))


def _find_json_document(text: str) -> dict[str, Any] | None:
    candidates = [text.strip()]
    candidates.extend(
        line.strip() for line in reversed(text.splitlines()) if line.strip().startswith("{")
    )
    for candidate in candidates:
        if not candidate:
            continue
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    return None


class CommandRunner:
    """Run a shell command that prints measurements as JSON.

    ``{suite}`` and ``{revision}`` in the command are replaced with the
    (shell-quoted) suite name and revision.
    """

    def __init__(self, command: str, *, env: dict[str, str] | None = None) -> None:
        if not command.strip():
            raise ValueError("CommandRunner needs a non-empty command")
        self.command = command
        self.env = env

    def build_command(self, revision: str, suite: str) -> str:
        return self.command.replace("{suite}", shlex.quote(suite)).replace(
            "{revision}", shlex.quote(revision)
        )

    def run_suite(self, revision: str, suite: str, workdir: Path) -> MeasurementSet:
        cmd = self.build_command(revision, suite)
        log.info("Running suite '%s' at %s: %s", suite, revision, cmd)
        try:
            proc = subprocess.run(
                cmd,
                shell=True,
                cwd=str(workdir),
                env=self.env,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            raise RunnerFailure(f"Cannot run benchmark command: {exc}") from exc

        if proc.returncode != 0:
            raise RunnerFailure(
                f"Benchmark command exited with status {proc.returncode}",
                _combined_output(proc),
            )

        measurements = parse_measurements(proc.stdout, label=suite)
        measurements.revision = revision
        measurements.suite = suite
        return measurements


# ---------------------------------------------------------------------------
# Criterion (cargo bench) adapter
# ---------------------------------------------------------------------------


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise RunnerFailure(f"Cannot read Criterion output {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise RunnerFailure(f"Unexpected Criterion output in {path}")
    return data


def load_criterion_baseline(criterion_dir: Path, tag: str) -> MeasurementSet:
    """Import a Criterion baseline saved with ``--save-baseline <tag>``.

    Criterion writes ``<criterion_dir>/<group>/.../<tag>/benchmark.json``
    (with the benchmark's ``full_id``) and ``sample.json`` (parallel
    ``iters`` and ``times`` arrays, times in nanoseconds). Each observation
    is the per-iteration time ``times[i] / iters[i]``.

    Raises:
        RunnerFailure: If no benchmark was saved under *tag* or the files
            are unreadable.
    """
    samples: dict[str, Sample] = {}
    for bench_file in sorted(criterion_dir.rglob("benchmark.json")):
        tag_dir = bench_file.parent
        if tag_dir.name != tag:
            continue
        sample_file = tag_dir / "sample.json"
        if not sample_file.is_file():
            log.warning("Skipping %s: no sample.json", tag_dir)
            continue

        meta = _read_json(bench_file)
        identifier = meta.get("full_id") or tag_dir.parent.relative_to(criterion_dir).as_posix()
        raw = _read_json(sample_file)
        iters = raw.get("iters", [])
        times = raw.get("times", [])
        values = [t / i for t, i in zip(times, iters) if i > 0]
        if not values:
            log.warning("Skipping %s: empty sample", identifier)
            continue
        samples[str(identifier)] = Sample.of(values)

    if not samples:
        raise RunnerFailure(f"No Criterion benchmarks saved as '{tag}' under {criterion_dir}")

    log.debug("Imported %d Criterion benchmarks from %s", len(samples), criterion_dir)
    return MeasurementSet(label=tag, samples=samples, unit="ns")


class CriterionRunner:
    """Run a Rust bench target with ``cargo bench`` and import its Criterion baseline."""

    def __init__(
        self,
        *,
        cargo: str = "cargo",
        tag: str = "etalon",
        criterion_dir: Path | None = None,
        extra_args: list[str] | None = None,
    ) -> None:
        self.cargo = cargo
        self.tag = tag
        self.criterion_dir = criterion_dir
        self.extra_args = extra_args or []

    def build_command(self, suite: str) -> list[str]:
        return [
            self.cargo,
            "bench",
            "--bench",
            suite,
            *self.extra_args,
            "--",
            "--noplot",
            "--save-baseline",
            self.tag,
        ]

    def _clear_previous(self, criterion_dir: Path) -> None:
        # A benchmark removed in this revision must not resurface from the
        # previous revision's saved baseline.
        if not criterion_dir.is_dir():
            return
        try:
            for stale in [p for p in criterion_dir.rglob(self.tag) if p.is_dir()]:
                shutil.rmtree(stale)
        except OSError as exc:
            raise RunnerFailure(f"Cannot clear previous Criterion baseline: {exc}") from exc

    def run_suite(self, revision: str, suite: str, workdir: Path) -> MeasurementSet:
        criterion_dir = self.criterion_dir or Path(workdir) / "target" / "criterion"
        self._clear_previous(criterion_dir)

        cmd = self.build_command(suite)
        log.info("Running %s at %s", shlex.join(cmd), revision)
        try:
            proc = subprocess.run(
                cmd,
                cwd=str(workdir),
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            raise RunnerFailure(f"Cannot run {self.cargo}: {exc}") from exc
        if proc.returncode != 0:
            raise RunnerFailure(
                f"cargo bench exited with status {proc.returncode}",
                _combined_output(proc),
            )

        measurements = load_criterion_baseline(criterion_dir, self.tag)
        measurements.revision = revision
        measurements.suite = suite
        return measurements
