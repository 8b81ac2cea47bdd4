# shrine/extract.py
"""
Segment extraction.

Responsibilities:
- Compute the exclusive lower boundary of the segment
- Clone the segment into a fresh repository, without checkout or tags

The boundary is the grandparent of the first author commit, so the clone
keeps exactly one context commit ahead of the segment. That commit carries
the full file tree and the first author commit shows only its own diff.

This module does NOT:
- choose the segment
- rewrite the cloned history
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import logging
import shutil

from shrine.markers import MarkerRegistry
from shrine.repo import (
    GitRepositoryError,
    clone_range,
    remove_remote,
    rename_branch,
    resolve_commit,
)


logger = logging.getLogger(__name__)


BOUNDARY_POLICIES = ("fail", "root")


class InsufficientHistory(RuntimeError):
    def __init__(self, commit: str) -> None:
        self.commit = commit
        super().__init__(
            f"Commit {commit[:12]} has fewer than two ancestors; "
            "cannot place a context commit before it"
        )


class CloneFailed(RuntimeError):
    pass


@dataclass(frozen=True)
class Boundary:
    first: str
    last: str
    start: Optional[str]  # None: no exclusion, clone everything up to last

    @property
    def truncated(self) -> bool:
        return self.start is not None


def range_start(repo_path: Path, first_commit: str, policy: str = "fail") -> Optional[str]:
    """
    Return the grandparent of first_commit.

    When it does not exist, policy "fail" raises InsufficientHistory and
    policy "root" returns None, meaning the whole history up to the segment
    is kept.
    """
    if policy not in BOUNDARY_POLICIES:
        raise ValueError(f"Unsupported boundary policy: {policy}")

    grandparent = resolve_commit(repo_path, f"{first_commit}^^")
    if grandparent is not None:
        return grandparent

    if policy == "fail":
        raise InsufficientHistory(first_commit)

    logger.warning(
        "commit %s is adjacent to the root; keeping the full history before it",
        first_commit[:12],
    )
    return None


def compute_boundary(
    repo_path: Path,
    first_commit: str,
    last_commit: str,
    policy: str = "fail",
) -> Boundary:
    return Boundary(
        first=first_commit,
        last=last_commit,
        start=range_start(repo_path, first_commit, policy),
    )


def _clear_destination(dest_path: Path) -> None:
    if dest_path.is_dir() and not dest_path.is_symlink():
        shutil.rmtree(dest_path)
    elif dest_path.exists() or dest_path.is_symlink():
        dest_path.unlink()


def extract(
    original_path: Path,
    boundary: Boundary,
    dest_path: Path,
    *,
    marker_prefix: str = "shrine",
    branch: str = "shrine",
    keep_remote: bool = False,
) -> Path:
    """
    Clone the commits in (boundary.start, boundary.last] into dest_path.

    Destructive: anything already at dest_path is removed first.
    Marker branches are created in the original repository for the duration
    of the clone and removed on every exit path.

    Raises:
        CloneFailed: if git clone fails; dest_path is then in an undefined state.
        MarkerCollision: if a marker name is already a branch; nothing is
        touched then.
    """
    with MarkerRegistry(original_path, marker_prefix) as markers:
        end_marker = markers.acquire("end", boundary.last)
        start_marker = None
        if boundary.start is not None:
            start_marker = markers.acquire("start", boundary.start)

        _clear_destination(dest_path)

        logger.info("cloning %s into %s", original_path, dest_path)
        try:
            clone_range(original_path, dest_path, branch=end_marker, exclude=start_marker)
        except GitRepositoryError as e:
            raise CloneFailed(f"Clone into {dest_path} failed: {e}") from e

    rename_branch(dest_path, end_marker, branch)
    if not keep_remote:
        remove_remote(dest_path)

    return dest_path
