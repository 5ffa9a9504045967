"""
Submission Adapter

Creates the pull request through the GitHub CLI. Preconditions are
checked once before any synthesis; submit() only pushes and creates.
Every gh/git failure maps onto the ErrorKind taxonomy.
"""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Protocol

from loguru import logger

from changescribe.config_loader import SubmitConfig
from changescribe.errors import AuthRequiredError, InvalidBranchStateError, SubmissionFailedError
from changescribe.models import DraftPR, SubmissionResult

AUTH_GUIDANCE = "Run `gh auth login` (or set GH_TOKEN) and try again."


class Submitter(Protocol):
    def check_preconditions(self, current_branch: str, base: str) -> None: ...

    def submit(self, draft: DraftPR, push: bool = False) -> SubmissionResult: ...


def build_create_command(draft: DraftPR, config: SubmitConfig) -> list[str]:
    """The `gh pr create` argv for a draft. Config values pass through untouched."""
    cmd = [
        "gh", "pr", "create",
        "--title", draft.title,
        "--body", draft.body,
        "--base", draft.base,
    ]
    if config.draft:
        cmd.append("--draft")
    for reviewer in config.reviewers:
        cmd.extend(["--reviewer", reviewer])
    for label in config.labels:
        cmd.extend(["--label", label])
    return cmd


def ensure_feature_branch(current_branch: str, base: str) -> None:
    if current_branch == base:
        raise InvalidBranchStateError(
            f"current branch '{current_branch}' is the base branch; "
            "create a feature branch first"
        )


class GhSubmitter:
    """Submits drafts with `gh pr create` from inside the repository."""

    def __init__(self, repo_path: Path, config: SubmitConfig | None = None, timeout: int = 120):
        self.repo_path = repo_path.resolve()
        self.config = config or SubmitConfig()
        self.timeout = timeout

    def check_preconditions(self, current_branch: str, base: str) -> None:
        ensure_feature_branch(current_branch, base)

        try:
            result = self._run(["gh", "auth", "status"])
        except FileNotFoundError as e:
            raise AuthRequiredError(f"gh CLI not found on PATH. Install it, then: {AUTH_GUIDANCE}") from e
        except subprocess.TimeoutExpired as e:
            raise AuthRequiredError(f"`gh auth status` timed out. {AUTH_GUIDANCE}") from e

        if result.returncode != 0:
            detail = (result.stderr or result.stdout).strip()
            raise AuthRequiredError(f"gh is not authenticated. {AUTH_GUIDANCE}\n{detail}")
        logger.debug("[SUBMIT] gh session authenticated")

    def submit(self, draft: DraftPR, push: bool = False) -> SubmissionResult:
        if push and self.config.push_branch:
            self._checked(["git", "push", "-u", self.config.remote, "HEAD"], "push failed")
            logger.info(f"[SUBMIT] Pushed HEAD to {self.config.remote}")

        result = self._checked(build_create_command(draft, self.config), "gh pr create failed")
        lines = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        if not lines:
            raise SubmissionFailedError("gh pr create returned no URL")

        url = lines[-1]
        logger.info(f"[SUBMIT] Pull request created: {url}")
        return SubmissionResult(url=url)

    def _checked(self, cmd: list[str], what: str) -> subprocess.CompletedProcess:
        try:
            result = self._run(cmd)
        except (FileNotFoundError, subprocess.TimeoutExpired) as e:
            raise SubmissionFailedError(f"{what}: {e}") from e
        if result.returncode != 0:
            raise SubmissionFailedError(result.stderr.strip() or f"{what} (exit {result.returncode})")
        return result

    def _run(self, cmd: list[str]) -> subprocess.CompletedProcess:
        return subprocess.run(
            cmd, cwd=self.repo_path, capture_output=True, text=True, timeout=self.timeout
        )
