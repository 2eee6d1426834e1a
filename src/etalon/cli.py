"""Command-line interface for etalon.

Subcommands:
    etalon run               Benchmark two revisions and compare them
    etalon compare           Compare two stored measurement sets
    etalon export            Export a comparison as JSON, CSV or Markdown
    etalon labels            List stored measurement sets
    etalon import-criterion  Store a saved Criterion baseline under a label

Exit codes:
    0  verdict ok or inconclusive
    1  verdict regression
    2  usage error (bad options or configuration)
    3  harness failure (checkout, benchmark run, storage, missing label)
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from etalon import __version__
from etalon.compare import Report, Verdict
from etalon.errors import EtalonError, HarnessFailure, StorageFailure
from etalon.export import EXPORT_FORMATS
from etalon.logging import setup_logging

log = logging.getLogger("etalon")

EXIT_OK = 0
EXIT_REGRESSION = 1
EXIT_HARNESS_FAILURE = 3


def _fail(exc: Exception) -> None:
    """Report a harness failure verbatim and exit with the failure code."""
    click.echo(f"Error: {exc}", err=True)
    if isinstance(exc, HarnessFailure) and exc.output.strip():
        click.echo(exc.output.rstrip(), err=True)
    raise SystemExit(EXIT_HARNESS_FAILURE) from exc


def _exit_for(report: Report) -> None:
    if report.verdict is Verdict.REGRESSION:
        raise SystemExit(EXIT_REGRESSION)


def _write_export(report: Report, path: Path | None, fmt: str) -> None:
    from etalon.export import export_report

    text = export_report(report, fmt)
    if path is None:
        click.echo(text, nl=False)
        return
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text)
    except OSError as exc:
        raise StorageFailure(f"Cannot write report to {path}: {exc}") from exc
    log.info("Exported %s report to %s", fmt, path)


_store_dir_option = click.option(
    "--store-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path(".etalon"),
    show_default=True,
    help="Directory holding stored measurement sets.",
)
_threshold_option = click.option(
    "--threshold",
    type=float,
    default=0.05,
    show_default=True,
    help="Relative change (0.05 = 5%) flagged as a regression or improvement.",
)
_noise_option = click.option(
    "--noise-threshold",
    type=float,
    default=0.10,
    show_default=True,
    help="Coefficient of variation above which a benchmark is marked noisy.",
)


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """etalon: catch benchmark regressions between two revisions."""


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


@main.command()
@click.option(
    "--profile",
    "profile_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML profile with harness settings.",
)
@click.option("--baseline-ref", type=str, default=None, help="Reference revision.")
@click.option("--candidate-ref", type=str, default=None, help="Revision under evaluation.")
@click.option("--suite", type=str, default=None, help="Benchmark suite to run.")
@click.option(
    "--threshold",
    type=float,
    default=None,
    help="Relative change flagged as a regression (default: 0.05).",
)
@click.option(
    "--noise-threshold",
    type=float,
    default=None,
    help="CV above which a benchmark is marked noisy (default: 0.10).",
)
@click.option(
    "--runner",
    type=click.Choice(["command", "criterion"]),
    default=None,
    help="Runner adapter (default: command).",
)
@click.option(
    "--command",
    "command",
    type=str,
    default=None,
    help="Shell command printing measurements as JSON ({suite}, {revision} substituted).",
)
@click.option(
    "--repo",
    "repo_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Existing git working tree to benchmark (default: current directory).",
)
@click.option("--clone", "clone_url", type=str, default=None, help="Clone this URL first.")
@click.option(
    "--work-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Where --clone puts its working tree.",
)
@click.option(
    "--store-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding stored measurement sets (default: .etalon).",
)
@click.option("--baseline-label", type=str, default=None, help="Label for the baseline set.")
@click.option("--candidate-label", type=str, default=None, help="Label for the candidate set.")
@click.option(
    "--export",
    "export_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write the report to this file.",
)
@click.option(
    "--format",
    "export_format",
    type=click.Choice(EXPORT_FORMATS),
    default=None,
    help="Format for --export (default: markdown).",
)
@click.option("-v", "--verbose", is_flag=True, help="Show debug output.")
@click.option("-q", "--quiet", is_flag=True, help="Only show warnings and errors.")
@click.option("--log-file", type=click.Path(dir_okay=False, path_type=Path), default=None)
def run(  # noqa: PLR0913
    profile_path: Path | None,
    baseline_ref: str | None,
    candidate_ref: str | None,
    suite: str | None,
    threshold: float | None,
    noise_threshold: float | None,
    runner: str | None,
    command: str | None,
    repo_dir: Path | None,
    clone_url: str | None,
    work_dir: Path | None,
    store_dir: Path | None,
    baseline_label: str | None,
    candidate_label: str | None,
    export_path: Path | None,
    export_format: str | None,
    verbose: bool,
    quiet: bool,
    log_file: Path | None,
) -> None:
    """Benchmark the baseline and candidate revisions and compare them.

    \b
    Examples:
        # Any suite that prints {"benchmarks": {...}} as JSON
        etalon run --baseline-ref main --candidate-ref HEAD \\
            --suite parse --command "python bench.py {suite}"

        # Rust crate benchmarked with Criterion
        etalon run --baseline-ref master --candidate-ref "$GITHUB_SHA" \\
            --suite lookup_benches --runner criterion --threshold 0.05
    """
    from etalon.checkout import GitCheckout, clone_repo
    from etalon.config import build_runner, config_from_profile, load_profile, validate_config
    from etalon.orchestrator import Orchestrator
    from etalon.store import MeasurementStore

    try:
        setup_logging(verbose=verbose, quiet=quiet, log_file=log_file)
    except OSError as exc:
        raise click.UsageError(f"Cannot open log file {log_file}: {exc}") from exc

    cli_overrides: dict[str, object] = {
        "suite": suite,
        "baseline_ref": baseline_ref,
        "candidate_ref": candidate_ref,
        "threshold": threshold,
        "noise_threshold": noise_threshold,
        "runner": runner,
        "command": command,
        "repo_dir": repo_dir,
        "clone_url": clone_url,
        "work_dir": work_dir,
        "store_dir": store_dir,
        "baseline_label": baseline_label,
        "candidate_label": candidate_label,
        "export_path": export_path,
        "export_format": export_format,
    }
    try:
        profile_data = load_profile(profile_path) if profile_path else {}
        config = config_from_profile(profile_data, cli_overrides=cli_overrides)
    except (ValueError, TypeError) as exc:
        raise click.UsageError(str(exc)) from exc

    problems = validate_config(config)
    for problem in problems:
        if problem.severity == "warning":
            log.warning("%s: %s", problem.field, problem.message)
    errors = [p for p in problems if p.severity == "error"]
    if errors:
        raise click.UsageError("\n".join(f"{p.field}: {p.message}" for p in errors))

    try:
        checkout_dir = config.checkout_dir
        if config.clone_url and not checkout_dir.exists():
            clone_repo(config.clone_url, checkout_dir)

        orchestrator = Orchestrator(
            GitCheckout(checkout_dir, keep=[p for p in (config.store_dir, log_file) if p]),
            build_runner(config),
            MeasurementStore(config.store_dir),
            workdir=checkout_dir,
            suite=config.suite,
            threshold=config.threshold,
            noise_threshold=config.noise_threshold,
            baseline_label=config.baseline_label,
            candidate_label=config.candidate_label,
            emit=click.echo,
        )
        result = orchestrator.run(config.baseline_ref, config.candidate_ref)
        if config.export_path is not None:
            _write_export(result.report, config.export_path, config.export_format)
    except (EtalonError, OSError) as exc:
        _fail(exc)
        return

    _exit_for(result.report)


# ---------------------------------------------------------------------------
# compare
# ---------------------------------------------------------------------------


@main.command("compare")
@click.argument("baseline")
@click.argument("candidate")
@_threshold_option
@_noise_option
@_store_dir_option
def compare_cmd(
    baseline: str,
    candidate: str,
    threshold: float,
    noise_threshold: float,
    store_dir: Path,
) -> None:
    """Compare two stored measurement sets, BASELINE and CANDIDATE.

    \b
    Example:
        etalon compare before after --threshold 0.03
    """
    from etalon.compare import compare
    from etalon.display import render
    from etalon.store import MeasurementStore

    try:
        report = compare(
            MeasurementStore(store_dir),
            baseline,
            candidate,
            threshold,
            noise_threshold=noise_threshold,
        )
    except ValueError as exc:
        raise click.UsageError(str(exc)) from exc
    except EtalonError as exc:
        _fail(exc)
        return

    click.echo(render(report))
    _exit_for(report)


# ---------------------------------------------------------------------------
# export
# ---------------------------------------------------------------------------


@main.command("export")
@click.argument("baseline")
@click.argument("candidate")
@click.option(
    "--format",
    "fmt",
    type=click.Choice(EXPORT_FORMATS),
    default="markdown",
    show_default=True,
    help="Export format.",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Output file (default: stdout).",
)
@_threshold_option
@_noise_option
@_store_dir_option
def export_cmd(
    baseline: str,
    candidate: str,
    fmt: str,
    output: Path | None,
    threshold: float,
    noise_threshold: float,
    store_dir: Path,
) -> None:
    """Export the comparison of BASELINE and CANDIDATE.

    The exit code does not depend on the verdict.

    \b
    Examples:
        etalon export before after --format json -o bench.json
        etalon export before after --format markdown > comment.md
    """
    from etalon.compare import compare
    from etalon.store import MeasurementStore

    try:
        report = compare(
            MeasurementStore(store_dir),
            baseline,
            candidate,
            threshold,
            noise_threshold=noise_threshold,
        )
    except ValueError as exc:
        raise click.UsageError(str(exc)) from exc
    except EtalonError as exc:
        _fail(exc)
        return

    try:
        _write_export(report, output, fmt)
    except StorageFailure as exc:
        _fail(exc)
        return
    if output is not None:
        click.echo(f"Exported to {output}")


# ---------------------------------------------------------------------------
# labels
# ---------------------------------------------------------------------------


@main.command("labels")
@_store_dir_option
def labels_cmd(store_dir: Path) -> None:
    """List the labels of stored measurement sets."""
    from etalon.store import MeasurementStore

    store = MeasurementStore(store_dir)
    try:
        for label in store.list_labels():
            ms = store.get(label)
            detail = ", ".join(p for p in (ms.suite, ms.revision[:12], ms.created_at) if p)
            click.echo(f"{label:<20s} {len(ms.samples):>4d} benchmarks  {detail}".rstrip())
    except EtalonError as exc:
        _fail(exc)


# ---------------------------------------------------------------------------
# import-criterion
# ---------------------------------------------------------------------------


@main.command("import-criterion")
@click.argument(
    "criterion_dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@click.argument("tag")
@click.option("--label", type=str, default=None, help="Store label (default: TAG).")
@click.option("--suite", type=str, default="", help="Suite name recorded with the set.")
@click.option("--revision", type=str, default="", help="Revision recorded with the set.")
@_store_dir_option
def import_criterion(
    criterion_dir: Path,
    tag: str,
    label: str | None,
    suite: str,
    revision: str,
    store_dir: Path,
) -> None:
    """Store the Criterion baseline TAG found under CRITERION_DIR.

    \b
    Example:
        cargo bench --bench lookup_benches -- --save-baseline before
        etalon import-criterion target/criterion before
    """
    from etalon.runner import load_criterion_baseline
    from etalon.store import MeasurementStore, validate_label

    target = label or tag
    try:
        validate_label(target)
    except ValueError as exc:
        raise click.UsageError(str(exc)) from exc

    try:
        measurements = load_criterion_baseline(criterion_dir, tag)
        measurements.suite = suite
        measurements.revision = revision
        MeasurementStore(store_dir).put(target, measurements)
    except EtalonError as exc:
        _fail(exc)
        return
    click.echo(f"Stored {len(measurements.samples)} benchmarks as '{target}'")
