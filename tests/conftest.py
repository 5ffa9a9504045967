from __future__ import annotations

import pytest

from changescribe.controller import Decision
from changescribe.errors import AuthRequiredError, SubmissionFailedError
from changescribe.models import CommitRecord, DiffStat, DraftPR, SubmissionResult
from changescribe.submission import ensure_feature_branch


def make_diff(paths, insertions: int = 0, deletions: int = 0) -> DiffStat:
    return DiffStat(
        files_changed=len(set(paths)),
        insertions=insertions,
        deletions=deletions,
        touched_paths=frozenset(paths),
    )


class FakeHistory:
    def __init__(self, branch="feature/login", subjects=(), diff=None, unpushed=True):
        self.branch = branch
        self.commits = [CommitRecord.from_subject(s) for s in subjects]
        self.diff = diff or DiffStat()
        self.unpushed = unpushed
        self.calls: list[str] = []

    def list_commits(self, base, head="HEAD"):
        self.calls.append("list_commits")
        return self.commits

    def diff_stat(self, base, head="HEAD"):
        self.calls.append("diff_stat")
        return self.diff

    def current_branch(self):
        self.calls.append("current_branch")
        return self.branch

    def has_unpushed_commits(self):
        self.calls.append("has_unpushed_commits")
        return self.unpushed


class FakeSubmitter:
    def __init__(self, url="https://github.com/acme/app/pull/7", failures: int = 0, authenticated=True):
        self.url = url
        self.failures = failures
        self.authenticated = authenticated
        self.precondition_checks = 0
        self.submitted: list[tuple[DraftPR, bool]] = []

    def check_preconditions(self, current_branch, base):
        self.precondition_checks += 1
        ensure_feature_branch(current_branch, base)
        if not self.authenticated:
            raise AuthRequiredError("gh is not authenticated")

    def submit(self, draft, push=False):
        self.submitted.append((draft, push))
        if self.failures:
            self.failures -= 1
            raise SubmissionFailedError("HTTP 422: Validation Failed")
        return SubmissionResult(url=self.url)


class ScriptedOperator:
    def __init__(self, decisions=(), ticket_answer=None, accept_inferred=True):
        self.decisions = list(decisions) or [Decision.approve()]
        self.ticket_answer = ticket_answer
        self.accept_inferred = accept_inferred
        self.confirmed: list[str] = []
        self.presented: list[DraftPR] = []
        self.ticket_questions = 0

    def present(self, draft):
        self.presented.append(draft)

    def decide(self, draft, can_undo):
        return self.decisions.pop(0)

    def confirm_ticket(self, ticket):
        self.confirmed.append(ticket.display_prefix)
        return self.accept_inferred

    def resolve_missing_ticket(self):
        self.ticket_questions += 1
        return self.ticket_answer


@pytest.fixture
def history_factory():
    return FakeHistory


@pytest.fixture
def submitter_factory():
    return FakeSubmitter


@pytest.fixture
def operator_factory():
    return ScriptedOperator


@pytest.fixture
def diff_factory():
    return make_diff
