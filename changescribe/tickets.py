"""
Ticket reference extraction.

Rules are tried in order and the first match wins:

  1. /browse/<KEY-123>   Jira URL           → [KEY-123]
  2. /issues/<123>       issue-tracker URL  → #123
  3. KEY-123 anywhere    bare Jira key      → [KEY-123]
     (UTF-8, SHA-256, ISO-8601 and similar standards never count)

No match is a normal outcome and yields None. Extraction never raises.
"""

from __future__ import annotations

import re
from typing import Iterable

from changescribe.models import CommitRecord, TicketRef, TicketSystem

JIRA_KEY = r"[A-Z][A-Z0-9]*-[0-9]+"

_BROWSE_RE = re.compile(rf"/browse/({JIRA_KEY})(?![A-Za-z0-9])")
_ISSUES_RE = re.compile(r"/issues/([0-9]+)(?![0-9])")
_BARE_KEY_RE = re.compile(rf"(?<![A-Za-z0-9])({JIRA_KEY})(?![A-Za-z0-9])")
_HASH_REF_RE = re.compile(r"(?<![\w&])#([0-9]+)\b")


def _jira(key: str) -> TicketRef:
    return TicketRef(system=TicketSystem.JIRA, id=key, display_prefix=f"[{key}]")


def _issue(number: str) -> TicketRef:
    return TicketRef(system=TicketSystem.ISSUE_TRACKER, id=number, display_prefix=f"#{number}")


# Standards, encodings and hashes that share the KEY-123 shape.
NON_TICKET_KEYS = frozenset({
    "AES", "CVE", "CWE", "ECMA", "ES", "HTTP", "IEEE", "IPV", "ISO", "MD",
    "PEP", "RFC", "SHA", "SSL", "TLS", "UCS", "UTF", "X",
})


def _bare_keys(text: str) -> list[str]:
    return [
        key for key in _BARE_KEY_RE.findall(text)
        if key.rsplit("-", 1)[0] not in NON_TICKET_KEYS
    ]


def extract_ticket(text: str | None) -> TicketRef | None:
    """Pull a ticket reference out of a URL or bare token."""
    if not text or not text.strip():
        return None

    match = _BROWSE_RE.search(text)
    if match:
        return _jira(match.group(1))

    match = _ISSUES_RE.search(text)
    if match:
        return _issue(match.group(1))

    keys = _bare_keys(text)
    if keys:
        return _jira(keys[0])
    return None


def generic_ticket(text: str) -> TicketRef | None:
    """Wrap an identifier that matches no rule, e.g. one typed by the operator."""
    token = " ".join(text.split())
    if not token:
        return None
    return TicketRef(system=TicketSystem.GENERIC, id=token, display_prefix=f"[{token}]")


def find_refs(subject: str) -> frozenset[str]:
    """All Jira keys and #N issue references mentioned in a commit subject."""
    refs = set(_bare_keys(subject))
    refs.update(f"#{n}" for n in _HASH_REF_RE.findall(subject))
    return frozenset(refs)


def infer_ticket(
    branch: str | None,
    commits: Iterable[CommitRecord] = (),
) -> TicketRef | None:
    """
    Guess the ticket from the branch name, then from the refs of each
    commit oldest to newest. A guess is not authoritative; callers confirm
    it with the operator before use.
    """
    ticket = extract_ticket(branch)
    if ticket:
        return ticket

    for commit in commits:
        # Jira keys before issue numbers, same as the extraction rules
        for ref in sorted(commit.refs, key=lambda r: (r.startswith("#"), r)):
            ticket = extract_ticket(ref) if not ref.startswith("#") else _issue(ref[1:])
            if ticket:
                return ticket
    return None
