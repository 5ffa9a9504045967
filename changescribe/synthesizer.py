"""
Description Synthesizer

Pure rendering of a MergedContext (plus optional ticket) into a PR title
and markdown body. Same input, byte-identical output.
"""

from __future__ import annotations

import re

from changescribe.classifier import strip_prefix
from changescribe.models import DraftPR, MergedContext, TicketRef

TITLE_LIMIT = 72
ELLIPSIS = "…"
FALLBACK_SUMMARY = "Update branch"

_BULLET_RE = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+")
_HEADER_RE = re.compile(r"^#+\s")
_TRAILING_PUNCT = " .,;:!-"


def _first_line(text: str | None) -> str:
    for line in (text or "").splitlines():
        line = _BULLET_RE.sub("", line).strip()
        if line and not _HEADER_RE.match(line):
            return line
    return ""


def _slug(line: str) -> str:
    line = " ".join(strip_prefix(line).split()).rstrip(_TRAILING_PUNCT)
    return line[:1].upper() + line[1:]


def _truncate(text: str, limit: int) -> str:
    """Cut at a word boundary so the result (with ellipsis) fits `limit`."""
    if len(text) <= limit:
        return text
    cut = text[: max(limit - len(ELLIPSIS), 0) + 1]
    space = cut.rfind(" ")
    if space <= 0:
        # A single over-long word is kept whole rather than split.
        return text.split(" ", 1)[0]
    return text[:space].rstrip(_TRAILING_PUNCT) + ELLIPSIS


def summarize(merged: MergedContext) -> str:
    """Short summary from the first line of `what`, else `why`."""
    line = _first_line(merged.what) or _first_line(merged.why)
    return _slug(line) or FALLBACK_SUMMARY


def render_title(merged: MergedContext, ticket: TicketRef | None = None) -> str:
    summary = summarize(merged)
    if ticket is None:
        return _truncate(summary, TITLE_LIMIT)
    budget = TITLE_LIMIT - len(ticket.display_prefix) - 1
    return f"{ticket.display_prefix} {_truncate(summary, budget)}"


def _section(header: str, content: str | None) -> str | None:
    if content is None or not content.strip():
        return None
    return f"## {header}\n{content.strip()}"


def render_body(merged: MergedContext) -> str:
    sections = [
        _section("Why", merged.why),
        _section("What", merged.what),
        _section("How", merged.how),
        _section("Testing", merged.testing),
    ]
    return "\n\n".join(s for s in sections if s) + "\n"


def synthesize(merged: MergedContext, ticket: TicketRef | None, base: str) -> DraftPR:
    return DraftPR(
        title=render_title(merged, ticket),
        body=render_body(merged),
        base=base,
        ticket=ticket,
    )
