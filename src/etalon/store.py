"""Label-addressed persistence for measurement sets.

Each set lives in ``<root>/<label>.json``. Writes go through a temporary
file in the same directory followed by ``os.replace``, so a label is either
fully visible or absent; an interrupted run never leaves a half-written set
behind and re-running with the same label is always safe.
"""

from __future__ import annotations

import dataclasses
import os
import re
import tempfile
from pathlib import Path
from typing import Iterator

from etalon.errors import NotFound, StorageFailure
from etalon.logging import get_logger
from etalon.results import MeasurementSet

log = get_logger("store")

_LABEL_RE = re.compile(r"[A-Za-z0-9_-][A-Za-z0-9._-]*")
_SUFFIX = ".json"


def validate_label(label: str) -> str:
    """Return *label* unchanged if it is usable as a store key.

    Raises:
        ValueError: If the label is empty, starts with ``.``, or contains
            characters other than letters, digits, ``.``, ``_`` and ``-``.
    """
    if not _LABEL_RE.fullmatch(label or ""):
        raise ValueError(
            f"Invalid label {label!r}: use letters, digits, '.', '_' or '-' "
            f"(not starting with '.')"
        )
    return label


def _atomic_write(path: Path, content: str) -> None:
    """Write content to a file atomically using a temp file and os.replace."""
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


class LabelView:
    """Re-iterable view over the labels currently in a store.

    Each iteration rescans the store directory, so the view reflects later
    ``put`` and ``delete`` calls.
    """

    def __init__(self, root: Path) -> None:
        self._root = root

    def __iter__(self) -> Iterator[str]:
        if not self._root.is_dir():
            return
        try:
            names = sorted(p.name for p in self._root.iterdir())
        except OSError as exc:
            raise StorageFailure(f"Cannot list {self._root}: {exc}") from exc
        for name in names:
            label = name[: -len(_SUFFIX)]
            if name.endswith(_SUFFIX) and _LABEL_RE.fullmatch(label):
                yield label

    def __contains__(self, label: object) -> bool:
        return any(label == known for known in self)


class MeasurementStore:
    """Directory-backed store of measurement sets keyed by label.

    A store is an ordinary object: construct one per harness invocation (or
    per test) pointing at the directory that should hold its sets. The
    directory is created on the first ``put``.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def _path(self, label: str) -> Path:
        return self.root / f"{validate_label(label)}{_SUFFIX}"

    def put(self, label: str, measurements: MeasurementSet) -> None:
        """Store *measurements* under *label*, replacing any previous set.

        Raises:
            StorageFailure: If the set cannot be written.
        """
        path = self._path(label)
        stored = dataclasses.replace(measurements, label=label)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            _atomic_write(path, stored.to_json())
        except OSError as exc:
            raise StorageFailure(f"Cannot write {path}: {exc}") from exc
        log.debug("Stored %d benchmarks under '%s' (%s)", len(stored.samples), label, path)

    def get(self, label: str) -> MeasurementSet:
        """Return the set stored under *label*.

        Raises:
            NotFound: If nothing is stored under *label*.
            StorageFailure: If the stored file cannot be read or decoded.
        """
        path = self._path(label)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise NotFound(label) from None
        except OSError as exc:
            raise StorageFailure(f"Cannot read {path}: {exc}") from exc
        try:
            return MeasurementSet.from_json(text)
        except (ValueError, KeyError, TypeError) as exc:
            raise StorageFailure(f"Corrupt measurement set {path}: {exc}") from exc

    def delete(self, label: str) -> None:
        """Remove the set stored under *label*.

        Raises:
            NotFound: If nothing is stored under *label*.
        """
        path = self._path(label)
        try:
            path.unlink()
        except FileNotFoundError:
            raise NotFound(label) from None
        except OSError as exc:
            raise StorageFailure(f"Cannot delete {path}: {exc}") from exc
        log.debug("Deleted '%s'", label)

    def list_labels(self) -> LabelView:
        """Return a lazy, re-iterable view of the stored labels (sorted)."""
        return LabelView(self.root)

    def __contains__(self, label: str) -> bool:
        return self._path(label).is_file()
