"""
Context Merger

Combines operator narrative with classifier output. Per field, operator
text wins verbatim; otherwise a fixed phrase template keyed by the
signals fills it in. `how` and `testing` only exist when there is
something to say.
"""

from __future__ import annotations

import re
from typing import Sequence

from changescribe.classifier import is_dependency_manifest, is_test_path
from changescribe.models import (
    ClassificationSignals,
    CommitRecord,
    CommitType,
    Complexity,
    DiffStat,
    DominantType,
    MergedContext,
    OperatorContext,
)

MAX_WHAT_BULLETS = 10
MAX_LISTED_PATHS = 5

_WHY_TEMPLATES: dict[DominantType, str] = {
    DominantType.FEAT: "This change adds new functionality: {lead}.",
    DominantType.FIX: "This change fixes a defect: {lead}.",
    DominantType.REFACTOR: "This change restructures existing code without altering behavior: {lead}.",
    DominantType.CHORE: "This change performs maintenance work: {lead}.",
    DominantType.MIXED: "This change combines {count} commits of different kinds, starting with: {lead}.",
}

_COMPLEXITY_NOTES: dict[Complexity, str] = {
    Complexity.TRIVIAL: "",
    Complexity.MODERATE: "",
    Complexity.ARCHITECTURAL: (
        " It spans several areas of the codebase and should be reviewed as an architectural change."
    ),
}

_NO_EVIDENCE_WHY = "No commit history was available to infer the motivation for this change."
_NO_EVIDENCE_WHAT = "No commits were found between the base branch and HEAD."

_DOMINANT_COMMIT = {
    DominantType.FEAT: CommitType.FEAT,
    DominantType.FIX: CommitType.FIX,
    DominantType.REFACTOR: CommitType.REFACTOR,
    DominantType.CHORE: CommitType.CHORE,
}


# ---------------------------------------------------------------------------
# Machine-derived fields
# ---------------------------------------------------------------------------

def _summaries(commits: Sequence[CommitRecord]) -> list[str]:
    """Commit summaries, oldest first, de-duplicated."""
    seen: dict[str, None] = {}
    for commit in commits:
        summary = commit.summary
        if summary:
            seen.setdefault(summary, None)
    return list(seen)


def _lead(signals: ClassificationSignals, commits: Sequence[CommitRecord]) -> str:
    wanted = _DOMINANT_COMMIT.get(signals.dominant_type)
    chosen = next((c for c in commits if c.type is wanted), None) or commits[0]
    lead = (chosen.summary or chosen.subject).rstrip(".")
    first_word = lead.split(" ", 1)[0]
    if any(ch.isupper() for ch in first_word[1:]):
        # JWT, OAuth, GitHub keep their casing
        return lead
    return lead[:1].lower() + lead[1:]


def _derive_why(signals: ClassificationSignals, commits: Sequence[CommitRecord]) -> str:
    if signals.insufficient_evidence:
        return _NO_EVIDENCE_WHY
    why = _WHY_TEMPLATES[signals.dominant_type].format(
        lead=_lead(signals, commits), count=signals.commit_count
    )
    why += _COMPLEXITY_NOTES[signals.complexity]
    if signals.has_breaking_signal:
        why += " It includes breaking changes."
    return why


def _derive_what(commits: Sequence[CommitRecord], diff: DiffStat) -> str:
    summaries = _summaries(commits)
    if not summaries:
        return _NO_EVIDENCE_WHAT

    lines = [f"- {s}" for s in summaries[:MAX_WHAT_BULLETS]]
    hidden = len(summaries) - MAX_WHAT_BULLETS
    if hidden > 0:
        lines.append(f"- …and {hidden} more")
    lines.append("")
    lines.append(
        f"{_files(diff.files_changed)} changed, "
        f"{_count(diff.insertions, 'insertion')}(+), {_count(diff.deletions, 'deletion')}(-)"
    )
    return "\n".join(lines)


def _count(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


def _files(count: int) -> str:
    return _count(count, "file")


def _listed(paths: Sequence[str]) -> str:
    shown = ", ".join(f"`{p}`" for p in paths[:MAX_LISTED_PATHS])
    if len(paths) > MAX_LISTED_PATHS:
        shown += f" and {len(paths) - MAX_LISTED_PATHS} more"
    return shown


def _derive_how(signals: ClassificationSignals, diff: DiffStat) -> str:
    lines = []
    dirs = diff.top_level_dirs
    if signals.complexity is Complexity.ARCHITECTURAL and dirs:
        lines.append(
            f"- Touches {_files(diff.files_changed)} across {len(dirs)} top-level areas: "
            + ", ".join(f"`{d}/`" for d in dirs)
        )
    else:
        lines.append(
            f"- Touches {_files(diff.files_changed)} "
            f"({_count(diff.insertions, 'insertion')}, {_count(diff.deletions, 'deletion')})"
        )
    if signals.has_new_dependency:
        manifests = sorted(p for p in diff.touched_paths if is_dependency_manifest(p))
        lines.append(f"- Updates dependency manifests: {_listed(manifests)}")
    if signals.has_breaking_signal:
        lines.append("- Introduces breaking changes; downstream consumers may need updates")
    return "\n".join(lines)


def _derive_testing(diff: DiffStat) -> str:
    tests = sorted(p for p in diff.touched_paths if is_test_path(p))
    return f"- Adds or updates tests: {_listed(tests)}"


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------

def how_included(signals: ClassificationSignals) -> bool:
    return (
        signals.complexity is not Complexity.TRIVIAL
        or signals.has_new_dependency
        or signals.has_breaking_signal
    )


def merge_context(
    signals: ClassificationSignals,
    commits: Sequence[CommitRecord],
    diff: DiffStat,
    operator: OperatorContext | None = None,
) -> MergedContext:
    """Apply operator-over-machine precedence, field by field."""
    operator = operator or OperatorContext()

    why = operator.why if operator.provided("why") else _derive_why(signals, commits)
    what = operator.what if operator.provided("what") else _derive_what(commits, diff)

    how = None
    if how_included(signals):
        how = operator.how if operator.provided("how") else _derive_how(signals, diff)

    testing = None
    if operator.provided("testing"):
        testing = operator.testing
    elif signals.has_tests:
        testing = _derive_testing(diff)

    return MergedContext(why=why, what=what, how=how, testing=testing)


# ---------------------------------------------------------------------------
# Edit parsing
# ---------------------------------------------------------------------------

_LABEL_RE = re.compile(r"^\s*(why|what|how|testing)\s*:\s?(.*)$", re.IGNORECASE)


def parse_edit(text: str) -> OperatorContext:
    """
    Turn free-form edit text into an OperatorContext.

    `why:`/`what:`/`how:`/`testing:` lines open a field and following lines
    extend it. Unlabeled text before the first label is narrative → `why`.
    """
    fields: dict[str, list[str]] = {}
    current = "why"
    for line in text.splitlines():
        match = _LABEL_RE.match(line)
        if match:
            current = match.group(1).lower()
            fields.setdefault(current, []).append(match.group(2))
        else:
            fields.setdefault(current, []).append(line)

    values = {name: "\n".join(lines).strip() or None for name, lines in fields.items()}
    return OperatorContext(**values)
