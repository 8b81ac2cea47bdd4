# shrine/rewrite.py
"""
History rewrite of an extracted segment.

Responsibilities:
- Drive an interactive rebase of the whole shrine history
- Serve the two editor callbacks git invokes during that rebase
- Carry the author name across the callback process boundary

git only accepts editor *commands*, so the callbacks are this package
re-invoked out of process. The author travels percent-encoded on that
command line.

This module does NOT:
- decide which entries are squashed (see shrine.engine)
- clone or locate anything
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional
from urllib.parse import quote_plus, unquote_plus
import argparse
import logging
import os
import shlex
import sys

from shrine.engine import PlanFormatError, rewrite_todo
from shrine.repo import (
    GitRepositoryError,
    count_commits,
    materialise_worktree,
    rebase_root,
)


logger = logging.getLogger(__name__)


# subject, then "name <email>" after a tab; parsed by shrine.engine
INSTRUCTION_FORMAT = "%s%x09%an <%ae>"

_CALLBACK_MODULE = "shrine.rewrite"


class CallbackIOError(RuntimeError):
    pass


class RebaseFailed(RuntimeError):
    pass


@dataclass(frozen=True)
class RewriteResult:
    commits_before: int
    commits_after: int


def encode_author(author: str) -> str:
    """
    Percent-encode everything outside [A-Za-z0-9.~_-]; spaces become "+".

    A leading "-" is encoded too, so the value never reads as an option.
    """
    encoded = quote_plus(author, safe="")
    if encoded.startswith("-"):
        encoded = "%2D" + encoded[1:]
    return encoded


def decode_author(encoded: str) -> str:
    return unquote_plus(encoded)


# ---------------------------------------------------------------------
# Callbacks (run inside git's editor invocations)
# ---------------------------------------------------------------------

def rewrite_todo_file(path: Path, author: str, match: str = "exact") -> None:
    """
    Rewrite the rebase todo at path in place.

    Raises:
        CallbackIOError: if the file cannot be read or written back.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise CallbackIOError(f"Cannot read edit plan {path}: {e}") from e

    rewritten = rewrite_todo(text, author, match)

    try:
        path.write_text(rewritten, encoding="utf-8")
    except OSError as e:
        raise CallbackIOError(f"Cannot write edit plan {path}: {e}") from e


def accept_message_file(path: Path) -> None:
    """
    Accept the commit message at path unchanged.

    The file is opened for update without writing to it, so an unwritable
    message fails here instead of being skipped silently.
    """
    try:
        with open(path, "r+", encoding="utf-8", errors="replace") as fh:
            fh.read()
    except OSError as e:
        raise CallbackIOError(f"Cannot access commit message {path}: {e}") from e


# ---------------------------------------------------------------------
# Rebase driver
# ---------------------------------------------------------------------

def _callback_command(args: List[str]) -> str:
    parts = [sys.executable, "-m", _CALLBACK_MODULE] + args
    return " ".join(shlex.quote(p) for p in parts)


def callback_environment(
    author: str,
    match: str = "exact",
    base: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """
    Environment for a rebase whose editors are this package's callbacks.
    """
    env = dict(os.environ if base is None else base)

    # git appends the plan path, so --to-do has to come last
    todo_args = ["--match", match] if match != "exact" else []
    todo_args += ["--to-do", encode_author(author)]

    env["GIT_SEQUENCE_EDITOR"] = _callback_command(todo_args)
    env["GIT_EDITOR"] = _callback_command(["--message"])

    # keep the shrine working tree off sys.path of the callbacks
    env["PYTHONSAFEPATH"] = "1"

    # the callbacks run with the shrine as working directory
    package_root = str(Path(__file__).resolve().parent.parent)
    existing = env.get("PYTHONPATH")
    env["PYTHONPATH"] = package_root if not existing else os.pathsep.join([package_root, existing])

    return env


def rewrite_history(shrine_path: Path, author: str, match: str = "exact") -> RewriteResult:
    """
    Rebase the whole shrine history, folding other authors' runs into joiners.

    The working tree is materialised first, since the clone was made
    without a checkout.

    Raises:
        RebaseFailed: if git rebase exits non-zero; the shrine is then left
        mid-rebase.
    """
    before = count_commits(shrine_path)
    materialise_worktree(shrine_path)

    env = callback_environment(author, match)
    settings = {
        "rebase.instructionFormat": INSTRUCTION_FORMAT,
        "rebase.abbreviateCommands": "false",
        "rebase.autoSquash": "false",
    }

    logger.info("rewriting %d commit(s) in %s", before, shrine_path)
    try:
        rebase_root(shrine_path, settings, env=env)
    except GitRepositoryError as e:
        raise RebaseFailed(f"History rewrite in {shrine_path} failed: {e}") from e

    after = count_commits(shrine_path)
    logger.info("history rewritten: %d -> %d commit(s)", before, after)
    return RewriteResult(commits_before=before, commits_after=after)


# ---------------------------------------------------------------------
# Callback entry point
# ---------------------------------------------------------------------

def _build_callback_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="git-shrine",
        description="Editor callbacks used while rewriting a shrine (internal)",
    )

    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument(
        "--to-do",
        nargs=2,
        metavar=("ENCODED_AUTHOR", "PATH"),
        help="Rewrite a rebase edit plan in place",
    )
    group.add_argument("--message", metavar="PATH", help="Accept a commit message as is")
    parser.add_argument("--match", choices=("exact", "pattern"), default="exact")

    return parser


def run_callback(argv: Optional[List[str]] = None) -> int:
    args = _build_callback_parser().parse_args(argv)

    try:
        if args.to_do:
            encoded, path = args.to_do
            rewrite_todo_file(Path(path), decode_author(encoded), args.match)
        else:
            accept_message_file(Path(args.message))
        return 0

    except (CallbackIOError, PlanFormatError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(run_callback())
