"""Logging setup for etalon.

A harness run prints two kinds of output. The report and its final
``verdict:`` line go to stdout, where CI steps grep or redirect them.
Progress messages are logged to stderr, so they never land in a
redirected report. ``--log-file`` keeps a timestamped DEBUG trace of the
run as a CI artifact, whatever the console verbosity. ``etalon run`` keeps
that file out of ``git clean`` when it sits inside the benchmarked working
tree.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

_LOGGER_NAME = "etalon"
_FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_CONSOLE_FORMAT = "%(levelname)-8s %(message)s"


def setup_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_file: Path | None = None,
) -> logging.Logger:
    """Configure the ``etalon`` logger for one CLI invocation.

    Handlers from an earlier call are closed and replaced, so repeated
    invocations in one process (the CLI tests) never write twice.

    Args:
        verbose: Show DEBUG progress on stderr, including each state
            transition.
        quiet: Show only warnings and errors on stderr. Ignored if
            *verbose* is True.
        log_file: Append a DEBUG trace to this file, creating its directory.

    Returns:
        The configured ``etalon`` logger.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    if verbose:
        console.setLevel(logging.DEBUG)
    elif quiet:
        console.setLevel(logging.WARNING)
    else:
        console.setLevel(logging.INFO)
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        trace = logging.FileHandler(log_file, encoding="utf-8")
        trace.setLevel(logging.DEBUG)
        trace.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(trace)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return the ``etalon.<name>`` logger for a module."""
    return logging.getLogger(f"{_LOGGER_NAME}.{name}")
