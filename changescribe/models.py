"""
Data model shared by every stage of the pipeline.

Evidence flows one way: CommitRecord + DiffStat → ClassificationSignals,
OperatorContext + signals → MergedContext → DraftPR → SubmissionResult.
Everything upstream of DraftPR is frozen.
"""

from __future__ import annotations

from enum import Enum
from pathlib import PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TicketSystem(str, Enum):
    JIRA = "jira"
    ISSUE_TRACKER = "issue_tracker"
    GENERIC = "generic"


class CommitType(str, Enum):
    FEAT = "feat"
    FIX = "fix"
    REFACTOR = "refactor"
    CHORE = "chore"
    UNKNOWN = "unknown"


class DominantType(str, Enum):
    FEAT = "feat"
    FIX = "fix"
    REFACTOR = "refactor"
    CHORE = "chore"
    MIXED = "mixed"


class Complexity(str, Enum):
    TRIVIAL = "trivial"
    MODERATE = "moderate"
    ARCHITECTURAL = "architectural"


class RunState(str, Enum):
    COLLECTING = "collecting"
    CLASSIFYING = "classifying"
    MERGING = "merging"
    SYNTHESIZING = "synthesizing"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    EDITING = "editing"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"
    ABORTED = "aborted"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (RunState.SUBMITTED, RunState.ABORTED, RunState.FAILED)


# ---------------------------------------------------------------------------
# Evidence
# ---------------------------------------------------------------------------

class TicketRef(BaseModel):
    """A tracker identifier and the exact prefix used in the PR title."""
    model_config = ConfigDict(frozen=True)

    system: TicketSystem
    id: str = Field(..., min_length=1)
    display_prefix: str


class CommitRecord(BaseModel):
    """One commit since the base branch, oldest first."""
    model_config = ConfigDict(frozen=True)

    subject: str
    type: CommitType = CommitType.UNKNOWN
    refs: frozenset[str] = Field(default_factory=frozenset)

    @classmethod
    def from_subject(cls, subject: str) -> "CommitRecord":
        # classifier and tickets both import this module
        from changescribe.classifier import commit_type
        from changescribe.tickets import find_refs

        subject = subject.strip()
        return cls(subject=subject, type=commit_type(subject), refs=find_refs(subject))

    @property
    def summary(self) -> str:
        """Subject without its conventional-commit prefix."""
        from changescribe.classifier import strip_prefix

        return strip_prefix(self.subject)

    @property
    def breaking(self) -> bool:
        from changescribe.classifier import is_breaking

        return is_breaking(self.subject)


class DiffStat(BaseModel):
    """Aggregate diff statistic over the whole branch range."""
    model_config = ConfigDict(frozen=True)

    files_changed: int = 0
    insertions: int = 0
    deletions: int = 0
    touched_paths: frozenset[str] = Field(default_factory=frozenset)

    @model_validator(mode="after")
    def _files_match_paths(self) -> "DiffStat":
        if self.files_changed != len(self.touched_paths):
            raise ValueError(
                f"files_changed={self.files_changed} but "
                f"{len(self.touched_paths)} touched paths"
            )
        return self

    @property
    def lines_changed(self) -> int:
        return self.insertions + self.deletions

    @property
    def top_level_dirs(self) -> list[str]:
        """Distinct first path segments, ignoring files at the repo root."""
        dirs = {
            PurePosixPath(p).parts[0]
            for p in self.touched_paths
            if len(PurePosixPath(p).parts) > 1
        }
        return sorted(dirs)


class ClassificationSignals(BaseModel):
    model_config = ConfigDict(frozen=True)

    dominant_type: DominantType = DominantType.MIXED
    complexity: Complexity = Complexity.TRIVIAL
    has_new_dependency: bool = False
    has_breaking_signal: bool = False
    has_tests: bool = False
    commit_count: int = 0

    @property
    def insufficient_evidence(self) -> bool:
        return self.commit_count == 0


# ---------------------------------------------------------------------------
# Narrative
# ---------------------------------------------------------------------------

_CONTEXT_FIELDS = ("why", "what", "how", "testing")


class OperatorContext(BaseModel):
    """Free text supplied by the human operator. Any field may be missing."""
    model_config = ConfigDict(frozen=True)

    why: str | None = None
    what: str | None = None
    how: str | None = None
    testing: str | None = None

    def provided(self, field: str) -> bool:
        value = getattr(self, field)
        return bool(value and value.strip())

    def updated(self, other: "OperatorContext") -> "OperatorContext":
        """Return a copy where every field `other` provides wins."""
        changes = {f: getattr(other, f) for f in _CONTEXT_FIELDS if other.provided(f)}
        return self.model_copy(update=changes)

    @property
    def empty(self) -> bool:
        return not any(self.provided(f) for f in _CONTEXT_FIELDS)


class MergedContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    why: str
    what: str
    how: str | None = None
    testing: str | None = None


# ---------------------------------------------------------------------------
# Draft + result
# ---------------------------------------------------------------------------

class DraftPR(BaseModel):
    """The editable title/body pair. Each edit produces a new instance."""
    title: str
    body: str
    base: str
    ticket: TicketRef | None = None


class SubmissionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str


class RunOutcome(BaseModel):
    """Terminal report of one controller run."""
    state: RunState
    draft: DraftPR | None = None
    result: SubmissionResult | None = None
    error_kind: str | None = None
    error_reason: str | None = None

    @field_validator("state")
    @classmethod
    def _must_be_terminal(cls, value: RunState) -> RunState:
        if not value.terminal:
            raise ValueError(f"run outcome needs a terminal state, got {value.value}")
        return value
