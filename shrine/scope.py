# shrine/scope.py
"""
Segment location.

Finds the first and last commits by one author reachable from a reference.

Responsibilities:
- Query the commit log for the author
- Pick the least and most recent matches in log order

This module does NOT:
- modify the repository
- compute clone boundaries
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List
import logging

from shrine.engine import author_matcher
from shrine.repo import Commit, load_author_log


logger = logging.getLogger(__name__)


MATCH_MODES = ("exact", "pattern")


class NoMatchingCommits(RuntimeError):
    def __init__(self, author: str, ref: str) -> None:
        self.author = author
        self.ref = ref
        super().__init__(f"No commits by {author!r} are reachable from {ref!r}")


@dataclass(frozen=True)
class Segment:
    first: Commit
    last: Commit
    author_commits: int


def select_author_commits(
    commits: List[Commit],
    author: str,
    match: str = "exact",
) -> List[Commit]:
    """
    Filter a log to the commits by author.

    In exact mode the author name must equal author. In pattern mode author
    is a regular expression searched in "name <email>", the same test the
    plan rewrite applies.
    """
    is_author = author_matcher(author, match)
    return [c for c in commits if is_author(c.author_name, c.author_email)]


def locate(
    repo_path: Path,
    author: str,
    ref: str,
    *,
    match: str = "exact",
) -> Segment:
    """
    Locate the segment spanned by author's commits reachable from ref.

    "First" and "last" follow the topological log order, not timestamps.

    Raises:
        NoMatchingCommits: if no reachable commit matches author.
    """
    if not author:
        raise ValueError("author must be a non-empty string")

    log = load_author_log(repo_path, ref)
    matches = select_author_commits(log, author, match)

    if not matches:
        raise NoMatchingCommits(author, ref)

    # log is most-recent-first
    segment = Segment(first=matches[-1], last=matches[0], author_commits=len(matches))
    logger.info(
        "found %d commit(s) by %s between %s and %s",
        segment.author_commits,
        author,
        segment.first.hash[:12],
        segment.last.hash[:12],
    )
    return segment
