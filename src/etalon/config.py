"""Harness configuration and YAML profile loading.

Handles:
- Loading harness profiles from YAML files.
- Merging CLI options over profile values.
- Validating the final configuration before any checkout happens.
- Building the runner adapter the configuration names.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from etalon.export import EXPORT_FORMATS
from etalon.runner import CommandRunner, CriterionRunner, SuiteRunner
from etalon.store import validate_label

RUNNER_KINDS = ("command", "criterion")


# ---------------------------------------------------------------------------
# HarnessConfig
# ---------------------------------------------------------------------------


@dataclass
class HarnessConfig:
    """Resolved configuration for one harness invocation."""

    # What to measure
    suite: str = ""
    baseline_ref: str = ""
    candidate_ref: str = ""

    # Decision
    threshold: float = 0.05
    noise_threshold: float = 0.10

    # Labels in the measurement store
    baseline_label: str = "before"
    candidate_label: str = "after"

    # Runner adapter
    runner: str = "command"
    command: str = ""
    cargo_tag: str = "etalon"
    cargo_args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)

    # Source tree: an existing checkout, or a URL cloned into work_dir
    repo_dir: Path | None = None
    clone_url: str = ""
    work_dir: Path | None = None

    # Paths
    store_dir: Path = field(default_factory=lambda: Path(".etalon"))
    export_path: Path | None = None
    export_format: str = "markdown"

    @property
    def checkout_dir(self) -> Path:
        """Directory holding the working tree the runner benchmarks."""
        if self.clone_url:
            base = self.work_dir or Path(".")
            return base / "etalon-bench"
        return self.repo_dir or Path(".")


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass
class ValidationError:
    """A single configuration validation error."""

    field: str
    message: str
    severity: str = "error"  # "error" or "warning"


def validate_config(config: HarnessConfig) -> list[ValidationError]:
    """Validate a harness configuration.

    Returns a list of validation errors. Empty list means valid.
    """
    errors: list[ValidationError] = []

    for name in ("suite", "baseline_ref", "candidate_ref"):
        if not getattr(config, name).strip():
            errors.append(ValidationError(field=name, message=f"'{name}' is required."))

    if not (config.threshold > 0 and math.isfinite(config.threshold)):
        errors.append(
            ValidationError(
                field="threshold",
                message=f"Threshold must be a positive fraction (got {config.threshold}).",
            )
        )
    elif config.threshold >= 1:
        errors.append(
            ValidationError(
                field="threshold",
                message=(
                    f"Threshold {config.threshold} is {config.threshold * 100:g}%; "
                    f"did you mean {config.threshold / 100:g}?"
                ),
                severity="warning",
            )
        )

    if not config.noise_threshold > 0:
        errors.append(
            ValidationError(
                field="noise_threshold",
                message=f"Noise threshold must be positive (got {config.noise_threshold}).",
            )
        )

    for name in ("baseline_label", "candidate_label"):
        try:
            validate_label(getattr(config, name))
        except ValueError as exc:
            errors.append(ValidationError(field=name, message=str(exc)))
    if config.baseline_label == config.candidate_label:
        errors.append(
            ValidationError(
                field="candidate_label",
                message="Baseline and candidate labels must differ.",
            )
        )

    if config.runner not in RUNNER_KINDS:
        errors.append(
            ValidationError(
                field="runner",
                message=f"Unknown runner '{config.runner}'. Choose from: {', '.join(RUNNER_KINDS)}",
            )
        )
    elif config.runner == "command" and not config.command.strip():
        errors.append(
            ValidationError(
                field="command",
                message="The 'command' runner needs --command (or 'command' in the profile).",
            )
        )

    if config.clone_url and config.repo_dir:
        errors.append(
            ValidationError(
                field="repo_dir",
                message="Use either a repository directory or a clone URL, not both.",
            )
        )
    elif config.repo_dir and not config.repo_dir.is_dir():
        errors.append(
            ValidationError(
                field="repo_dir",
                message=f"Repository directory does not exist: {config.repo_dir}",
            )
        )

    if config.export_format not in EXPORT_FORMATS:
        errors.append(
            ValidationError(
                field="export_format",
                message=(
                    f"Unknown export format '{config.export_format}'. "
                    f"Choose from: {', '.join(EXPORT_FORMATS)}"
                ),
            )
        )

    return errors


# ---------------------------------------------------------------------------
# YAML profile loading
# ---------------------------------------------------------------------------


def load_profile(profile_path: Path) -> dict[str, Any]:
    """Load a harness profile from a YAML file.

    Profile format::

        suite: lookup_benches
        baseline_ref: master
        threshold: 0.05
        runner: criterion
        cargo:
          tag: etalon
          args: ["--features", "bench"]
        labels:
          baseline: before
          candidate: after
        store_dir: .etalon
        export:
          path: bench-report.md
          format: markdown

    Returns:
        The parsed YAML as a dict.
    """
    if not profile_path.exists():
        raise FileNotFoundError(f"Profile not found: {profile_path}")

    data = yaml.safe_load(profile_path.read_text())
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Profile must be a YAML mapping, got {type(data).__name__}")
    return data


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ValueError(f"Profile '{name}' must be a mapping, got {type(value).__name__}")
    return value


def config_from_profile(
    profile_data: dict[str, Any],
    *,
    cli_overrides: dict[str, Any] | None = None,
) -> HarnessConfig:
    """Build a HarnessConfig from a parsed profile.

    Any CLI override that is not None takes precedence over the profile.

    Args:
        profile_data: Parsed YAML profile dict (may be empty).
        cli_overrides: CLI option values keyed by HarnessConfig field name.

    Returns:
        HarnessConfig with every field resolved.
    """
    cli = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    labels = _section(profile_data, "labels")
    cargo = _section(profile_data, "cargo")
    export = _section(profile_data, "export")

    env = profile_data.get("env") or {}
    if not isinstance(env, dict):
        raise ValueError("Profile 'env' must be a mapping of NAME -> value")

    def pick(key: str, profile_value: Any, default: Any) -> Any:
        if key in cli:
            return cli[key]
        return default if profile_value is None else profile_value

    def path_or_none(value: Any) -> Path | None:
        return Path(value) if value else None

    return HarnessConfig(
        suite=str(pick("suite", profile_data.get("suite"), "")),
        baseline_ref=str(pick("baseline_ref", profile_data.get("baseline_ref"), "")),
        candidate_ref=str(pick("candidate_ref", profile_data.get("candidate_ref"), "")),
        threshold=float(pick("threshold", profile_data.get("threshold"), 0.05)),
        noise_threshold=float(pick("noise_threshold", profile_data.get("noise_threshold"), 0.10)),
        baseline_label=str(pick("baseline_label", labels.get("baseline"), "before")),
        candidate_label=str(pick("candidate_label", labels.get("candidate"), "after")),
        runner=str(pick("runner", profile_data.get("runner"), "command")),
        command=str(pick("command", profile_data.get("command"), "")),
        cargo_tag=str(pick("cargo_tag", cargo.get("tag"), "etalon")),
        cargo_args=[str(a) for a in pick("cargo_args", cargo.get("args"), [])],
        env={str(k): str(v) for k, v in env.items()},
        repo_dir=path_or_none(pick("repo_dir", profile_data.get("repo"), None)),
        clone_url=str(pick("clone_url", profile_data.get("clone"), "")),
        work_dir=path_or_none(pick("work_dir", profile_data.get("work_dir"), None)),
        store_dir=Path(pick("store_dir", profile_data.get("store_dir"), ".etalon")),
        export_path=path_or_none(pick("export_path", export.get("path"), None)),
        export_format=str(pick("export_format", export.get("format"), "markdown")),
    )


# ---------------------------------------------------------------------------
# Runner construction
# ---------------------------------------------------------------------------


def build_runner(config: HarnessConfig) -> SuiteRunner:
    """Instantiate the runner adapter named by ``config.runner``."""
    if config.runner == "criterion":
        return CriterionRunner(tag=config.cargo_tag, extra_args=list(config.cargo_args))
    if config.runner == "command":
        env = None
        if config.env:
            env = dict(os.environ)
            env.update(config.env)
        return CommandRunner(config.command, env=env)
    raise ValueError(f"Unknown runner '{config.runner}'")
