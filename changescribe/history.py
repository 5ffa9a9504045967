"""
History Collector

Thin adapter over the git CLI. The rest of the pipeline only sees the
HistorySource protocol; GitHistory is the production implementation.
Every failure surfaces as HistoryUnavailableError and is never retried.
"""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Protocol, Sequence

from loguru import logger

from changescribe.errors import HistoryUnavailableError
from changescribe.models import CommitRecord, DiffStat


class HistorySource(Protocol):
    def list_commits(self, base: str, head: str = "HEAD") -> Sequence[CommitRecord]: ...

    def diff_stat(self, base: str, head: str = "HEAD") -> DiffStat: ...

    def current_branch(self) -> str: ...

    def has_unpushed_commits(self) -> bool: ...


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------

def parse_log(output: str) -> list[CommitRecord]:
    """One subject per line, as printed by `git log --reverse --format=%s`."""
    return [CommitRecord.from_subject(line) for line in output.splitlines() if line.strip()]


def parse_numstat(output: str) -> DiffStat:
    """
    Aggregate `git diff --numstat` output.

    Binary files print `-` for both counts; they still count as touched.
    """
    insertions = deletions = 0
    paths: set[str] = set()

    for line in output.splitlines():
        parts = line.split("\t", 2)
        if len(parts) != 3 or not parts[2].strip():
            continue
        added, removed, path = parts
        insertions += int(added) if added.isdigit() else 0
        deletions += int(removed) if removed.isdigit() else 0
        paths.add(path.strip())

    return DiffStat(
        files_changed=len(paths),
        insertions=insertions,
        deletions=deletions,
        touched_paths=frozenset(paths),
    )


# ---------------------------------------------------------------------------
# Git adapter
# ---------------------------------------------------------------------------

class GitHistory:
    """Reads branch history from a local git checkout."""

    def __init__(self, repo_path: Path, remote: str = "origin", timeout: int = 30):
        self.repo_path = repo_path.resolve()
        self.remote = remote
        self.timeout = timeout

    def list_commits(self, base: str, head: str = "HEAD") -> list[CommitRecord]:
        ref = self._resolve_base(base)
        output = self._git("log", "--reverse", "--no-merges", "--format=%s", f"{ref}..{head}")
        commits = parse_log(output)
        logger.debug(f"[HISTORY] {len(commits)} commits in {ref}..{head}")
        return commits

    def diff_stat(self, base: str, head: str = "HEAD") -> DiffStat:
        ref = self._resolve_base(base)
        output = self._git("diff", "--numstat", "--no-renames", f"{ref}...{head}")
        stat = parse_numstat(output)
        logger.debug(
            f"[HISTORY] {stat.files_changed} files, +{stat.insertions}/-{stat.deletions}"
        )
        return stat

    def current_branch(self) -> str:
        branch = self._git("rev-parse", "--abbrev-ref", "HEAD").strip()
        if branch == "HEAD":
            raise HistoryUnavailableError("detached HEAD: check out a branch first")
        return branch

    def has_unpushed_commits(self) -> bool:
        """True when HEAD is ahead of its upstream, or no upstream exists yet."""
        result = self._run(["git", "rev-list", "--count", "@{u}..HEAD"])
        if result.returncode != 0:
            logger.debug("[HISTORY] No upstream configured; branch has never been pushed")
            return True
        count = result.stdout.strip()
        return count.isdigit() and int(count) > 0

    def _resolve_base(self, base: str) -> str:
        """Use the local base branch, falling back to the remote-tracking one."""
        for candidate in (base, f"{self.remote}/{base}"):
            result = self._run(["git", "rev-parse", "--verify", "--quiet", candidate])
            if result.returncode == 0:
                return candidate
        raise HistoryUnavailableError(f"base branch '{base}' not found locally or on {self.remote}")

    def _git(self, *args: str) -> str:
        cmd = ["git", *args]
        result = self._run(cmd)
        if result.returncode != 0:
            raise HistoryUnavailableError(f"git failed: {' '.join(cmd)}\n{result.stderr.strip()}")
        return result.stdout

    def _run(self, cmd: list[str]) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                cmd, cwd=self.repo_path, capture_output=True, text=True, timeout=self.timeout
            )
        except FileNotFoundError as e:
            raise HistoryUnavailableError("git is not installed or not on PATH") from e
        except subprocess.TimeoutExpired as e:
            raise HistoryUnavailableError(f"git timed out after {self.timeout}s: {' '.join(cmd)}") from e
