# shrine/markers.py
"""
Transient marker branches.

The clone primitive only accepts ref names for its range boundaries, so
commit ids are exposed under temporary branch names for the duration of
one clone. A registry owns every marker it creates and removes all of
them on exit, whatever the outcome.
"""

from __future__ import annotations

from pathlib import Path
from types import TracebackType
from typing import List, Optional, Type
import logging

from shrine.repo import create_branch, delete_branch, resolve_commit


logger = logging.getLogger(__name__)


class MarkerCollision(RuntimeError):
    def __init__(self, repo_path: Path, name: str) -> None:
        self.repo_path = repo_path
        self.name = name
        super().__init__(
            f"Branch {name!r} already exists in {repo_path}; choose another markers.prefix"
        )


class MarkerRegistry:
    def __init__(self, repo_path: Path, prefix: str) -> None:
        self.repo_path = repo_path
        self.prefix = prefix
        self._names: List[str] = []

    def name_for(self, label: str) -> str:
        return f"{self.prefix}-{label}"

    def acquire(self, label: str, commit: str) -> str:
        """
        Create the marker for label and return its ref name.

        A marker this registry already holds is moved to commit. A branch of
        the same name that it does not hold is left alone.

        Raises:
            MarkerCollision: if that branch already exists in the repository.
        """
        name = self.name_for(label)
        if name not in self._names:
            if resolve_commit(self.repo_path, f"refs/heads/{name}") is not None:
                raise MarkerCollision(self.repo_path, name)
            # registered first so a half-created marker is still released
            self._names.append(name)
        create_branch(self.repo_path, name, commit)
        logger.debug("marker %s -> %s", name, commit)
        return name

    @property
    def active(self) -> List[str]:
        return list(self._names)

    def release_all(self) -> List[str]:
        """
        Delete every acquired marker. Returns the names that could not be removed.
        """
        leaked: List[str] = []
        while self._names:
            name = self._names.pop()
            if not delete_branch(self.repo_path, name):
                leaked.append(name)
        return leaked

    def __enter__(self) -> "MarkerRegistry":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        leaked = self.release_all()
        if leaked:
            logger.warning(
                "left marker branch(es) behind in %s: %s",
                self.repo_path,
                ", ".join(leaked),
            )
