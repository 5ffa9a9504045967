"""
CHANGESCRIBE error taxonomy.

Every failure the pipeline can surface to the operator carries an
ErrorKind. Precondition kinds stop a run before any synthesis; a
submission failure is the only kind raised after a draft exists.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    HISTORY_UNAVAILABLE = "history_unavailable"
    INVALID_BRANCH_STATE = "invalid_branch_state"
    AUTH_REQUIRED = "auth_required"
    SUBMISSION_FAILED = "submission_failed"


class ScribeError(Exception):
    """Base class for errors tied to an ErrorKind."""

    kind: ErrorKind

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.reason}"


class HistoryUnavailableError(ScribeError):
    """No commits since base, or git could not be queried."""
    kind = ErrorKind.HISTORY_UNAVAILABLE


class InvalidBranchStateError(ScribeError):
    """The current branch is the base branch."""
    kind = ErrorKind.INVALID_BRANCH_STATE


class AuthRequiredError(ScribeError):
    """The gh CLI session is not authenticated."""
    kind = ErrorKind.AUTH_REQUIRED


class SubmissionFailedError(ScribeError):
    """gh rejected the pull request; reason is its stderr, verbatim."""
    kind = ErrorKind.SUBMISSION_FAILED


class ConfigError(Exception):
    """A config file could not be parsed or failed validation."""
