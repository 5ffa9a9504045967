"""
Change Classifier

Deterministic reduction of commit subjects and a diff stat into a small
set of signals. It is NOT smart: no heuristics beyond the tables below,
no I/O, and it never raises on odd input.
"""

from __future__ import annotations

import fnmatch
import re
from collections import Counter
from pathlib import PurePosixPath
from typing import Sequence

from changescribe.models import (
    ClassificationSignals,
    CommitRecord,
    CommitType,
    Complexity,
    DiffStat,
    DominantType,
)

# ---------------------------------------------------------------------------
# Conventional-commit prefixes
# ---------------------------------------------------------------------------

_PREFIX_RE = re.compile(
    r"^\s*(?P<token>[A-Za-z]+)(?:\([^)]*\))?(?P<bang>!)?\s*:\s*(?P<rest>.*)$"
)

_TYPE_TOKENS: dict[str, CommitType] = {
    "feat": CommitType.FEAT,
    "feature": CommitType.FEAT,
    "fix": CommitType.FIX,
    "bugfix": CommitType.FIX,
    "hotfix": CommitType.FIX,
    "refactor": CommitType.REFACTOR,
    "perf": CommitType.REFACTOR,
    "chore": CommitType.CHORE,
    "build": CommitType.CHORE,
    "ci": CommitType.CHORE,
    "docs": CommitType.CHORE,
    "style": CommitType.CHORE,
    "test": CommitType.CHORE,
    "tests": CommitType.CHORE,
}

_BREAKING_RE = re.compile(r"\bbreaking[ _-]changes?\b", re.IGNORECASE)


def commit_type(subject: str) -> CommitType:
    match = _PREFIX_RE.match(subject)
    if not match:
        return CommitType.UNKNOWN
    return _TYPE_TOKENS.get(match.group("token").lower(), CommitType.UNKNOWN)


def strip_prefix(subject: str) -> str:
    """Subject without its `type(scope)!:` prefix, if the prefix is a known type."""
    match = _PREFIX_RE.match(subject)
    if match and match.group("token").lower() in _TYPE_TOKENS:
        return match.group("rest").strip()
    return subject.strip()


def is_breaking(subject: str) -> bool:
    if _BREAKING_RE.search(subject):
        return True
    match = _PREFIX_RE.match(subject)
    return bool(match and match.group("bang"))


# ---------------------------------------------------------------------------
# Path conventions
# ---------------------------------------------------------------------------

DEPENDENCY_MANIFESTS = (
    "requirements*.txt",
    "requirements*.in",
    "pyproject.toml",
    "setup.py",
    "setup.cfg",
    "Pipfile",
    "Pipfile.lock",
    "poetry.lock",
    "uv.lock",
    "package.json",
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "go.mod",
    "go.sum",
    "Cargo.toml",
    "Cargo.lock",
    "Gemfile",
    "Gemfile.lock",
    "pom.xml",
    "build.gradle",
    "build.gradle.kts",
    "composer.json",
    "composer.lock",
)

TEST_DIRS = frozenset({"test", "tests", "__tests__", "spec"})

TEST_FILE_PATTERNS = (
    "test_*.py",
    "*_test.*",
    "*.test.*",
    "*.spec.*",
    "*Test.java",
    "*Tests.*",
    "conftest.py",
)

ARCHITECTURAL_FILE_COUNT = 10
ARCHITECTURAL_DIR_COUNT = 3
TRIVIAL_FILE_COUNT = 2
TRIVIAL_LINE_COUNT = 20


def is_dependency_manifest(path: str) -> bool:
    name = PurePosixPath(path).name
    return any(fnmatch.fnmatchcase(name, pattern) for pattern in DEPENDENCY_MANIFESTS)


def is_test_path(path: str) -> bool:
    parts = PurePosixPath(path).parts
    if any(part in TEST_DIRS for part in parts[:-1]):
        return True
    name = parts[-1] if parts else ""
    return any(fnmatch.fnmatchcase(name, pattern) for pattern in TEST_FILE_PATTERNS)


# ---------------------------------------------------------------------------
# Signals
# ---------------------------------------------------------------------------

_DOMINANT = {
    CommitType.FEAT: DominantType.FEAT,
    CommitType.FIX: DominantType.FIX,
    CommitType.REFACTOR: DominantType.REFACTOR,
    CommitType.CHORE: DominantType.CHORE,
}


def dominant_type(commits: Sequence[CommitRecord]) -> DominantType:
    """Majority vote over typed commits; anything short of >50% is MIXED."""
    votes = Counter(c.type for c in commits if c.type is not CommitType.UNKNOWN)
    typed = sum(votes.values())
    if not typed:
        return DominantType.MIXED

    ranked = votes.most_common(2)
    leader, leader_votes = ranked[0]
    if len(ranked) > 1 and ranked[1][1] == leader_votes:
        return DominantType.MIXED
    if leader_votes * 2 <= typed:
        return DominantType.MIXED
    return _DOMINANT[leader]


def complexity(diff: DiffStat) -> Complexity:
    if (
        diff.files_changed >= ARCHITECTURAL_FILE_COUNT
        or len(diff.top_level_dirs) >= ARCHITECTURAL_DIR_COUNT
    ):
        return Complexity.ARCHITECTURAL
    if diff.files_changed <= TRIVIAL_FILE_COUNT and diff.lines_changed <= TRIVIAL_LINE_COUNT:
        return Complexity.TRIVIAL
    return Complexity.MODERATE


def classify(commits: Sequence[CommitRecord], diff: DiffStat) -> ClassificationSignals:
    """Reduce branch evidence to ClassificationSignals."""
    return ClassificationSignals(
        dominant_type=dominant_type(commits),
        complexity=complexity(diff),
        has_new_dependency=any(is_dependency_manifest(p) for p in diff.touched_paths),
        has_breaking_signal=any(c.breaking for c in commits),
        has_tests=any(is_test_path(p) for p in diff.touched_paths),
        commit_count=len(commits),
    )
