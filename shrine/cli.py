#!/usr/bin/env python3
"""git-shrine CLI.

Builds a repository holding only the stretch of history spanned by one
author's commits, with other authors' commits folded into joiners.

Also serves the editor callbacks git invokes while rewriting that history.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional
import logging
import sys

from shrine.config import Config, ConfigError, load_config
from shrine.dryrun import build_entries, render_dryrun_report
from shrine.engine import PlanFormatError
from shrine.extract import CloneFailed, Boundary, InsufficientHistory, compute_boundary, extract
from shrine.markers import MarkerCollision
from shrine.repo import (
    GitRepositoryError,
    collect_garbage,
    ensure_git_repository,
    load_range,
    object_store_size,
    resolve_commit,
)
from shrine.rewrite import (
    CallbackIOError,
    RebaseFailed,
    RewriteResult,
    rewrite_history,
    run_callback,
)
from shrine.scope import NoMatchingCommits, Segment, locate
from shrine.validation import ValidationError, validate_author, validate_config, validate_paths


_FAILURES = (
    ConfigError,
    ValidationError,
    GitRepositoryError,
    NoMatchingCommits,
    InsufficientHistory,
    MarkerCollision,
    CloneFailed,
    RebaseFailed,
    CallbackIOError,
    PlanFormatError,
)


@dataclass(frozen=True)
class BuildResult:
    segment: Segment
    boundary: Boundary
    rewrite: RewriteResult
    original_size: int
    shrine_size: int


def build_shrine(
    *,
    author: str,
    original_path: Path,
    ref: str,
    shrine_path: Path,
    config: Config,
) -> BuildResult:
    """
    Locate the author's segment, clone it into shrine_path and rewrite it.

    Destructive for shrine_path; the caller confirms it is expendable.
    """
    segment = locate(original_path, author, ref, match=config.author.match)
    boundary = compute_boundary(
        original_path,
        segment.first.hash,
        segment.last.hash,
        config.boundary.on_insufficient_history,
    )

    extract(
        original_path,
        boundary,
        shrine_path,
        marker_prefix=config.markers.prefix,
        branch=config.output.branch,
        keep_remote=config.output.keep_remote,
    )

    result = rewrite_history(shrine_path, author, config.author.match)

    if config.gc:
        collect_garbage(shrine_path)

    return BuildResult(
        segment=segment,
        boundary=boundary,
        rewrite=result,
        original_size=object_store_size(original_path),
        shrine_size=object_store_size(shrine_path),
    )


def render_summary(result: BuildResult, shrine_path: Path, config: Config) -> str:
    n = config.hash_len
    start = result.boundary.start
    lines = [
        f"Shrine: {shrine_path} (branch {config.output.branch})",
        f"Segment: {result.segment.first.hash[:n]}..{result.segment.last.hash[:n]}"
        f" ({result.segment.author_commits} author commit(s))",
        f"Excluded from: {start[:n] if start else '<none, full history>'}",
        f"Commits: {result.rewrite.commits_before} -> {result.rewrite.commits_after}",
        f"Size: original {result.original_size} KiB, shrine {result.shrine_size} KiB",
    ]
    return "\n".join(lines)


def dry_run(
    *,
    author: str,
    original_path: Path,
    ref: str,
    config: Config,
) -> str:
    segment = locate(original_path, author, ref, match=config.author.match)
    boundary = compute_boundary(
        original_path,
        segment.first.hash,
        segment.last.hash,
        config.boundary.on_insufficient_history,
    )

    commits = load_range(original_path, boundary.last, exclude=boundary.start)
    entries = build_entries(
        commits,
        author,
        match=config.author.match,
        hash_len=config.hash_len,
    )

    return render_dryrun_report(
        author=author,
        ref=ref,
        first=segment.first,
        last=segment.last,
        start=boundary.start,
        entries=entries,
        hash_len=config.hash_len,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="git-shrine",
        description=(
            "Copy the stretch of history spanned by one author's commits into a new "
            "repository, squashing other authors' commits in between"
        ),
    )

    parser.add_argument("author", help="Author name, as recorded in the commits")
    parser.add_argument("original", help="Path to the original git repository")
    parser.add_argument("ref", help="Branch, tag or commit to search from")
    parser.add_argument("shrine", help="Path of the repository to create")

    parser.add_argument("--config", help="Path to a shrine policy YAML")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the planned rewrite without creating anything",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite the shrine path if it already has content",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log git commands")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    if argv and argv[0].split("=", 1)[0] in ("--to-do", "--message", "--match"):
        return run_callback(argv)

    args = _build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    original_path = Path(args.original).expanduser().resolve()
    shrine_path = Path(args.shrine).expanduser().resolve()
    config_path = Path(args.config).expanduser().resolve() if args.config else None

    try:
        author = validate_author(args.author)
        config = validate_config(load_config(config_path))

        ensure_git_repository(original_path)
        if resolve_commit(original_path, args.ref) is None:
            raise ValidationError("ref", f"{args.ref!r} does not name a commit in {original_path}")

        if args.dry_run:
            print(dry_run(author=author, original_path=original_path, ref=args.ref, config=config))
            return 0

        validate_paths(original_path, shrine_path, force=bool(args.force))

        result = build_shrine(
            author=author,
            original_path=original_path,
            ref=args.ref,
            shrine_path=shrine_path,
            config=config,
        )

        print(render_summary(result, shrine_path, config))
        return 0

    except _FAILURES as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
