"""git operations used to switch the system under test between revisions."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Iterable

from etalon.errors import CheckoutFailure
from etalon.logging import get_logger

log = get_logger("checkout")


def _git(
    args: list[str], cwd: Path | None, timeout: float | None
) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        ["git", *args],
        capture_output=True,
        text=True,
        cwd=str(cwd) if cwd is not None else None,
        timeout=timeout,
        check=False,
    )


def clone_repo(repo_url: str, dest: Path, *, timeout: float | None = None) -> Path:
    """Clone *repo_url* at full depth into *dest*.

    Full history is needed because the baseline revision may be any
    ancestor of the candidate. No timeout applies unless one is given.

    Raises:
        CheckoutFailure: If git exits non-zero or is missing.
    """
    log.info("Cloning %s into %s", repo_url, dest)
    try:
        proc = _git(["clone", repo_url, str(dest)], None, timeout)
    except (OSError, subprocess.TimeoutExpired) as exc:
        raise CheckoutFailure(repo_url, str(exc)) from exc
    if proc.returncode != 0:
        raise CheckoutFailure(repo_url, proc.stderr)
    return dest


class GitCheckout:
    """Checkout mechanism for a local git working tree.

    Args:
        repo_dir: The working tree to switch between revisions.
        keep: Paths that ``git clean`` must never remove, such as a
            measurement store or log file living inside the working tree.
            Paths outside *repo_dir* are ignored.
        timeout: Seconds allowed per git command; ``None`` waits forever.
    """

    def __init__(
        self,
        repo_dir: Path,
        *,
        keep: Iterable[Path] = (),
        timeout: float | None = None,
    ) -> None:
        self.repo_dir = Path(repo_dir)
        self.keep = list(keep)
        self.timeout = timeout

    def _clean_excludes(self) -> list[str]:
        root = self.repo_dir.resolve()
        args: list[str] = []
        for path in self.keep:
            try:
                rel = Path(path).resolve().relative_to(root)
            except ValueError:
                continue
            if rel.parts:
                args += ["-e", "/" + rel.as_posix()]
        return args

    def resolve(self, rev: str) -> str:
        """Resolve a revision name to a full commit hash.

        Raises:
            CheckoutFailure: If the revision does not exist.
        """
        try:
            proc = _git(["rev-parse", "--verify", f"{rev}^{{commit}}"], self.repo_dir, self.timeout)
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise CheckoutFailure(rev, str(exc)) from exc
        if proc.returncode != 0:
            raise CheckoutFailure(rev, proc.stderr)
        return proc.stdout.strip()

    def checkout(self, rev: str) -> str:
        """Force-checkout *rev* and remove untracked files left by the previous build.

        Returns:
            The full commit hash now checked out.

        Raises:
            CheckoutFailure: If git cannot check out *rev*.
        """
        try:
            proc = _git(["checkout", "--force", rev], self.repo_dir, self.timeout)
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise CheckoutFailure(rev, str(exc)) from exc
        if proc.returncode != 0:
            raise CheckoutFailure(rev, proc.stderr)

        # Ignored build outputs (target/, caches) and kept paths survive.
        try:
            clean = _git(["clean", "-fd", *self._clean_excludes()], self.repo_dir, self.timeout)
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise CheckoutFailure(rev, f"git clean failed: {exc}") from exc
        if clean.returncode != 0:
            log.warning("git clean failed in %s: %s", self.repo_dir, clean.stderr.strip())

        commit = self.resolve("HEAD")
        log.info("Checked out %s (%s)", rev, commit[:12])
        return commit
