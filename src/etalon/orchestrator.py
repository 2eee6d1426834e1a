"""Two-revision benchmark workflow.

The orchestrator resolves both revisions to commits while IDLE, so names
relative to the working tree such as ``HEAD`` keep their meaning after the
baseline checkout. It then walks a fixed sequence of states::

    IDLE
      → CHECKED_OUT_BASELINE    checkout(baseline)
      → BASELINE_MEASURED       run suite, store as "before"
      → CHECKED_OUT_CANDIDATE   checkout(candidate)
      → CANDIDATE_MEASURED      run suite, store as "after"
      → COMPARED                compare the two stored sets
      → DONE                    render and emit the report

Any failure moves to the terminal FAILED state and the exception propagates
unchanged. Nothing is retried: a flaky benchmark environment must show up
as a failed run, not be papered over.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Protocol

from etalon.compare import Report, compare
from etalon.display import render
from etalon.errors import EtalonError, NotFound
from etalon.logging import get_logger
from etalon.runner import SuiteRunner
from etalon.store import MeasurementStore, validate_label

log = get_logger("orchestrator")


class State(enum.Enum):
    """Orchestrator states, in workflow order."""

    IDLE = "idle"
    CHECKED_OUT_BASELINE = "checked_out_baseline"
    BASELINE_MEASURED = "baseline_measured"
    CHECKED_OUT_CANDIDATE = "checked_out_candidate"
    CANDIDATE_MEASURED = "candidate_measured"
    COMPARED = "compared"
    DONE = "done"
    FAILED = "failed"


class Checkout(Protocol):
    """Anything that can switch the working tree to a revision."""

    def resolve(self, rev: str) -> str:
        """Return the commit identifier *rev* names in the current working tree."""
        ...

    def checkout(self, rev: str) -> str:
        """Check out *rev* and return the resolved commit identifier."""
        ...


@dataclass
class OrchestratorResult:
    """Outcome of a completed workflow."""

    report: Report
    text: str
    baseline_commit: str
    candidate_commit: str
    history: list[State] = field(default_factory=list)


class Orchestrator:
    """Benchmark a baseline and a candidate revision, then compare them."""

    def __init__(
        self,
        checkout: Checkout,
        runner: SuiteRunner,
        store: MeasurementStore,
        *,
        workdir: Path,
        suite: str,
        threshold: float = 0.05,
        noise_threshold: float = 0.10,
        baseline_label: str = "before",
        candidate_label: str = "after",
        emit: Callable[[str], None] | None = None,
    ) -> None:
        if not (threshold > 0):
            raise ValueError(f"Threshold must be a positive fraction (got {threshold!r})")
        self.checkout = checkout
        self.runner = runner
        self.store = store
        self.workdir = Path(workdir)
        self.suite = suite
        self.threshold = threshold
        self.noise_threshold = noise_threshold
        self.baseline_label = validate_label(baseline_label)
        self.candidate_label = validate_label(candidate_label)
        self.emit = emit
        self.state = State.IDLE
        self.history: list[State] = [State.IDLE]

    def _advance(self, state: State) -> None:
        log.debug("%s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def _discard(self, label: str) -> None:
        # The label stays absent until its run completes.
        try:
            self.store.delete(label)
        except NotFound:
            return
        log.debug("Discarded stale set '%s'", label)

    def _measure(self, revision: str, commit: str, label: str) -> None:
        self._discard(label)
        log.info("Benchmarking suite '%s' at %s as '%s'", self.suite, revision, label)
        measurements = self.runner.run_suite(commit, self.suite, self.workdir)
        if not measurements.revision:
            measurements.revision = commit
        if not measurements.suite:
            measurements.suite = self.suite
        self.store.put(label, measurements)

    def run(self, baseline_ref: str, candidate_ref: str) -> OrchestratorResult:
        """Execute the whole workflow.

        Raises:
            CheckoutFailure: If either revision cannot be resolved or checked out.
            RunnerFailure: If either suite run fails.
            StorageFailure: If the measurement store cannot be written or read.
            OSError: If a runner fails on the filesystem without wrapping the error.
            RuntimeError: If this orchestrator has already run.
        """
        if self.state is not State.IDLE:
            raise RuntimeError(f"Orchestrator already ran (state: {self.state.value})")

        try:
            baseline_commit = self.checkout.resolve(baseline_ref)
            candidate_commit = self.checkout.resolve(candidate_ref)
            log.info(
                "Baseline %s is %s, candidate %s is %s",
                baseline_ref,
                baseline_commit[:12],
                candidate_ref,
                candidate_commit[:12],
            )

            baseline_commit = self.checkout.checkout(baseline_commit)
            self._advance(State.CHECKED_OUT_BASELINE)

            self._measure(baseline_ref, baseline_commit, self.baseline_label)
            self._advance(State.BASELINE_MEASURED)

            candidate_commit = self.checkout.checkout(candidate_commit)
            self._advance(State.CHECKED_OUT_CANDIDATE)

            self._measure(candidate_ref, candidate_commit, self.candidate_label)
            self._advance(State.CANDIDATE_MEASURED)

            report = compare(
                self.store,
                self.baseline_label,
                self.candidate_label,
                self.threshold,
                noise_threshold=self.noise_threshold,
            )
            self._advance(State.COMPARED)
        except (EtalonError, OSError) as exc:
            log.error("Harness failed in state '%s': %s", self.state.value, exc)
            self._advance(State.FAILED)
            raise

        text = render(report)
        if self.emit is not None:
            self.emit(text)
        self._advance(State.DONE)

        return OrchestratorResult(
            report=report,
            text=text,
            baseline_commit=baseline_commit,
            candidate_commit=candidate_commit,
            history=list(self.history),
        )
