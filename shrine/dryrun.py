# shrine/dryrun.py
"""
Dry run reporting.

Responsibilities:
- Build the edit plan a shrine build would hand to the rebase
- Render a deterministic, human readable output

This module does NOT:
- call git
- clone or rewrite history
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from shrine.engine import PICK, PlanEntry, author_matcher, count_actions, rewrite_plan
from shrine.repo import Commit


@dataclass(frozen=True)
class DryRunEntry:
    index: int
    hash_prefix: str
    author_name: str
    action: str
    is_author: bool
    subject: str


def build_entries(
    commits: Sequence[Commit],
    author: str,
    *,
    match: str = "exact",
    hash_len: int = 12,
) -> List[DryRunEntry]:
    """
    Plan the rewrite of commits (oldest -> newest) for author.

    Raises:
        ValueError: if hash_len is invalid.
    """
    if hash_len <= 0:
        raise ValueError("hash_len must be a positive integer")

    plan = rewrite_plan(
        [
            PlanEntry(
                action=PICK,
                author=c.author_name,
                commit=c.hash,
                summary=c.subject,
                email=c.author_email,
            )
            for c in commits
        ],
        author,
        match,
    )
    is_author = author_matcher(author, match)

    return [
        DryRunEntry(
            index=idx,
            hash_prefix=c.hash[:hash_len],
            author_name=c.author_name,
            action=entry.action,
            is_author=is_author(c.author_name, c.author_email),
            subject=c.subject,
        )
        for idx, (c, entry) in enumerate(zip(commits, plan))
    ]


def render_dryrun_report(
    *,
    author: str,
    ref: str,
    first: Commit,
    last: Commit,
    start: Optional[str],
    entries: Sequence[DryRunEntry],
    hash_len: int,
) -> str:
    """
    Render a dry run report as plain text.
    """
    lines: List[str] = []

    counts = count_actions(
        [PlanEntry(action=e.action, author=e.author_name) for e in entries]
    )

    lines.append(f"Author: {author}")
    lines.append(f"Reference: {ref}")
    lines.append(f"First commit: {first.hash[:hash_len]}  {first.subject}")
    lines.append(f"Last commit: {last.hash[:hash_len]}  {last.subject}")
    lines.append(f"Excluded from: {start[:hash_len] if start else '<none, full history>'}")
    lines.append(f"Commits in clone: {len(entries)}")
    lines.append(f"Author commits: {sum(1 for e in entries if e.is_author)}")
    lines.append(f"Commits after rewrite: {counts['pick']}")

    if not entries:
        return "\n".join(lines)

    lines.append("")
    lines.append(f"Hash shown as {hash_len} character prefix")
    lines.append("")

    headers = ["idx", "hash", "action", "author", "subject"]

    rows: List[List[str]] = []
    for e in sorted(entries, key=lambda x: x.index):
        rows.append(
            [
                str(e.index),
                e.hash_prefix,
                e.action,
                ("* " if e.is_author else "  ") + e.author_name,
                e.subject,
            ]
        )

    lines.extend(_format_table(headers, rows))
    return "\n".join(lines)


def _format_table(headers: List[str], rows: List[List[str]]) -> List[str]:
    widths = [len(h) for h in headers]

    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    def fmt_row(items: List[str]) -> str:
        return "  ".join(items[i].ljust(widths[i]) for i in range(len(items))).rstrip()

    lines: List[str] = []
    lines.append(fmt_row(headers))
    lines.append(fmt_row(["-" * w for w in widths]))

    for row in rows:
        lines.append(fmt_row(row))

    return lines
