"""Exception hierarchy for etalon.

Harness failures (checkout, runner, storage) abort a run and map to a
dedicated CLI exit code. A missing label is recoverable for callers of the
store; the comparator turns it into :class:`MissingBaseline` or
:class:`MissingCandidate`.
"""

from __future__ import annotations


class EtalonError(Exception):
    """Base for all etalon errors."""


class NotFound(EtalonError):
    """No measurement set is stored under the requested label."""

    def __init__(self, label: str) -> None:
        self.label = label
        super().__init__(f"No measurement set stored under label '{label}'")


class StorageFailure(EtalonError):
    """The measurement store could not read or write its medium."""


class ComparisonError(EtalonError):
    """Preconditions for a comparison are not met."""

    def __init__(self, label: str, role: str) -> None:
        self.label = label
        self.role = role
        super().__init__(f"{role.capitalize()} measurement set '{label}' not found")


class MissingBaseline(ComparisonError):
    """The baseline label is absent from the store."""

    def __init__(self, label: str) -> None:
        super().__init__(label, "baseline")


class MissingCandidate(ComparisonError):
    """The candidate label is absent from the store."""

    def __init__(self, label: str) -> None:
        super().__init__(label, "candidate")


class UnitMismatch(EtalonError):
    """The two sets were measured in different units and cannot be compared."""

    def __init__(self, baseline_unit: str, candidate_unit: str) -> None:
        self.baseline_unit = baseline_unit
        self.candidate_unit = candidate_unit
        super().__init__(
            "Cannot compare sets measured in different units "
            f"(baseline: '{baseline_unit}', candidate: '{candidate_unit}')"
        )


class HarnessFailure(EtalonError):
    """A collaborator of the orchestrator failed (checkout or suite run)."""

    def __init__(self, message: str, output: str = "") -> None:
        self.output = output
        super().__init__(message)


class CheckoutFailure(HarnessFailure):
    """Checking out or cloning a revision failed."""

    def __init__(self, revision: str, output: str = "") -> None:
        self.revision = revision
        detail = f": {output.strip()}" if output.strip() else ""
        super().__init__(f"git checkout of '{revision}' failed{detail}", output)


class RunnerFailure(HarnessFailure):
    """The benchmark suite could not be built or run, or its output was unusable."""
