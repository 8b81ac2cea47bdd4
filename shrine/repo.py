# shrine/repo.py
"""
Repository access through the git command line.

Reads commit history, manages transient marker branches and performs the
range clone a shrine is built from.
Handles Git Bash ↔ Windows path normalisation.

This module does NOT:
- decide segment boundaries
- edit rebase plans
"""

from __future__ import annotations

from dataclasses import dataclass
from subprocess import run, PIPE, CalledProcessError
from typing import Dict, List, Mapping, Optional
from pathlib import Path
import logging
import os


logger = logging.getLogger(__name__)


# Single source of truth for git field separation
_FIELD_SEP = "\x00"

_LOG_FORMAT = "%H%x00%an%x00%ae%x00%s"


@dataclass(frozen=True)
class Commit:
    hash: str
    author_name: str
    author_email: str
    subject: str = ""
    index: int = 0


class GitRepositoryError(RuntimeError):
    pass


def _normalise_repo_path(repo_path: Path) -> Path:
    """
    Convert Git Bash paths (/c/Users/...) to native Windows paths (C:\\Users\\...).
    No-op on non-Windows systems.
    """
    if os.name != "nt":
        return repo_path

    p = str(repo_path)

    if p.startswith("/") and len(p) >= 3 and p[2] == "/":
        drive = p[1]
        if drive.isalpha():
            return Path(f"{drive.upper()}:/{p[3:]}")

    return Path(p)


def _run_git(
    args: List[str],
    *,
    cwd: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> str:
    logger.debug("git %s", " ".join(args))

    try:
        result = run(
            ["git"] + args,
            cwd=str(cwd) if cwd is not None else None,
            env=dict(env) if env is not None else None,
            stdout=PIPE,
            stderr=PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=True,
        )
        # Do not strip spaces, only trailing newlines
        return result.stdout.rstrip("\n")
    except CalledProcessError as e:
        stderr = (e.stderr or "").strip()
        raise GitRepositoryError(stderr if stderr else f"git {args[0]} failed") from e


def _run_git_command(
    repo_path: Path,
    args: List[str],
    env: Optional[Mapping[str, str]] = None,
) -> str:
    repo_path = _normalise_repo_path(repo_path)
    return _run_git(["-C", str(repo_path)] + args, env=env)


def ensure_git_repository(repo_path: Path) -> None:
    try:
        _run_git_command(repo_path, ["rev-parse", "--git-dir"])
    except GitRepositoryError as e:
        raise GitRepositoryError(f"Not a git repository: {repo_path}") from e


def _parse_log(raw_log: str) -> List[Commit]:
    commits: List[Commit] = []

    if not raw_log:
        return commits

    for idx, line in enumerate(raw_log.splitlines()):
        parts = line.split(_FIELD_SEP)

        if len(parts) != 4:
            raise GitRepositoryError(f"Malformed git log line: {line!r}")

        commit_hash, author_name, author_email, subject = parts

        commits.append(
            Commit(
                hash=commit_hash,
                author_name=author_name,
                author_email=author_email,
                subject=subject,
                index=idx,
            )
        )

    return commits


def load_author_log(repo_path: Path, ref: str) -> List[Commit]:
    """
    Load commits reachable from ref in most-recent-first topological order.
    """
    args = ["log", "--topo-order", f"--pretty=format:{_LOG_FORMAT}", ref, "--"]
    return _parse_log(_run_git_command(repo_path, args))


def load_range(
    repo_path: Path,
    end: str,
    exclude: Optional[str] = None,
) -> List[Commit]:
    """
    Load commits reachable from end but not from exclude, oldest -> newest.
    """
    args = ["log", "--topo-order", "--reverse", f"--pretty=format:{_LOG_FORMAT}", end]
    if exclude is not None:
        args.append(f"^{exclude}")
    args.append("--")

    return _parse_log(_run_git_command(repo_path, args))


def resolve_commit(repo_path: Path, rev: str) -> Optional[str]:
    """
    Resolve rev to a full commit hash, or None when it names no commit.
    """
    repo_path = _normalise_repo_path(repo_path)
    result = run(
        ["git", "-C", str(repo_path), "rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}"],
        stdout=PIPE,
        stderr=PIPE,
        text=True,
        encoding="utf-8",
        errors="replace",
    )
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def count_commits(repo_path: Path, rev: str = "HEAD") -> int:
    return int(_run_git_command(repo_path, ["rev-list", "--count", rev]).strip())


def create_branch(repo_path: Path, name: str, commit: str) -> None:
    """
    Point refs/heads/<name> at commit, overwriting any previous value.
    """
    _run_git_command(repo_path, ["update-ref", f"refs/heads/{name}", commit])


def delete_branch(repo_path: Path, name: str) -> bool:
    """
    Best-effort removal of refs/heads/<name>. A missing branch is not an error.

    Returns True when the branch is gone afterwards.
    """
    if resolve_commit(repo_path, f"refs/heads/{name}") is None:
        return True

    try:
        _run_git_command(repo_path, ["update-ref", "-d", f"refs/heads/{name}"])
    except GitRepositoryError as e:
        logger.warning("could not delete branch %s: %s", name, e)
        return False

    return True


def clone_range(
    source_path: Path,
    dest_path: Path,
    *,
    branch: str,
    exclude: Optional[str] = None,
) -> None:
    """
    Clone the history of branch from source into dest without a checkout
    and without tags, cutting it at the ancestors of exclude.

    A file:// URL is used so git takes the transport path that honours
    --shallow-exclude instead of the local hardlink shortcut.
    """
    source = _normalise_repo_path(source_path).resolve()
    dest = _normalise_repo_path(dest_path)

    args = [
        "clone",
        "--quiet",
        "--no-checkout",
        "--no-tags",
        "--single-branch",
        "--branch",
        branch,
    ]
    if exclude is not None:
        args.append(f"--shallow-exclude={exclude}")
    args += [source.as_uri(), str(dest)]

    _run_git(args)


def rename_branch(repo_path: Path, old: str, new: str) -> None:
    if old != new:
        _run_git_command(repo_path, ["branch", "-M", old, new])


def remove_remote(repo_path: Path, name: str = "origin") -> None:
    _run_git_command(repo_path, ["remote", "remove", name])


def materialise_worktree(repo_path: Path) -> None:
    _run_git_command(repo_path, ["reset", "--quiet", "--hard", "HEAD"])


def collect_garbage(repo_path: Path) -> None:
    _run_git_command(repo_path, ["reflog", "expire", "--expire=now", "--all"])
    _run_git_command(repo_path, ["gc", "--quiet", "--prune=now"])


def object_store_size(repo_path: Path) -> int:
    """
    Size of the object store in KiB, loose objects and packs together.
    """
    raw = _run_git_command(repo_path, ["count-objects", "-v"])

    fields: Dict[str, str] = {}
    for line in raw.splitlines():
        key, _, value = line.partition(":")
        fields[key.strip()] = value.strip()

    try:
        return int(fields.get("size", "0")) + int(fields.get("size-pack", "0"))
    except ValueError as e:
        raise GitRepositoryError(f"Unexpected count-objects output: {raw!r}") from e


def rebase_root(
    repo_path: Path,
    settings: Mapping[str, str],
    env: Optional[Mapping[str, str]] = None,
) -> None:
    """
    Run ``git rebase --interactive --root`` with one-off config settings.

    The editors come from env; git blocks until they exit.
    """
    args: List[str] = []
    for key, value in settings.items():
        args += ["-c", f"{key}={value}"]
    args += ["rebase", "--interactive", "--root"]

    _run_git_command(repo_path, args, env=env)
