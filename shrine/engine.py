# shrine/engine.py
"""
Edit plan rewriting.

Turns the rebase plan of an extracted segment into one that keeps every
commit by the target author and folds each run of other authors' commits
into a single joiner commit.

Responsibilities:
- Rewrite an ordered plan of (action, author) entries
- Parse and render the rebase todo lines those entries come from

This module does NOT:
- call git
- read or write files
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Sequence, Tuple
import re


PICK = "pick"
SQUASH = "squash"

_ACTION_ALIASES = {
    "pick": PICK,
    "p": PICK,
    "squash": SQUASH,
    "s": SQUASH,
}

# "<action> <commit> <subject>\t<author name> <author email>", see rebase.instructionFormat
_PLAN_LINE_RE = re.compile(r"^(?P<indent>\s*)(?P<action>\S+)(?P<gap>[ \t]+)(?P<commit>\S+)(?P<rest>[ \t].*)?$")

AUTHOR_SEPARATOR = "\t"

_IDENTITY_RE = re.compile(r"^(?P<name>.*?)\s*<(?P<email>[^<>]*)>$")


class PlanFormatError(RuntimeError):
    pass


@dataclass(frozen=True)
class PlanEntry:
    action: str
    author: str
    commit: str = ""
    summary: str = ""
    email: str = ""


# ---------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------

def rewrite_plan(
    entries: Sequence[PlanEntry],
    author: str,
    match: str = "exact",
) -> List[PlanEntry]:
    """
    Mark every non-author entry that follows another non-author entry as squash.

    The output has the same length and order as the input; only actions
    change. Author entries are always pick. The first entry is always pick,
    since there is nothing before it to squash into. Within a run of
    non-author entries the first one stays pick and becomes the joiner the
    rest of the run is squashed into.

    Re-applying this to its own output is not a general identity: the plan
    carries no memory of which picks were joiners, so a changed target
    author derives different runs.
    """
    is_author = author_matcher(author, match)
    result: List[PlanEntry] = []
    squashing = False

    for entry in entries:
        if is_author(entry.author, entry.email):
            result.append(_with_action(entry, PICK))
            squashing = False
        elif not squashing:
            result.append(_with_action(entry, PICK))
            squashing = True
        else:
            result.append(_with_action(entry, SQUASH))

    return result


def parse_plan_line(line: str) -> Optional[PlanEntry]:
    """
    Parse one todo line into a PlanEntry.

    Returns None for blank lines, comments and commands other than
    pick/squash. Raises PlanFormatError for a pick/squash line without an
    author field.
    """
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return None

    m = _PLAN_LINE_RE.match(line.rstrip("\r\n"))
    if m is None:
        return None

    action = _ACTION_ALIASES.get(m.group("action"))
    if action is None:
        return None

    rest = m.group("rest") or ""
    if AUTHOR_SEPARATOR not in rest:
        raise PlanFormatError(f"Plan line carries no author field: {line.rstrip()!r}")

    summary, _, identity = rest.rpartition(AUTHOR_SEPARATOR)
    name, email = split_identity(identity)
    return PlanEntry(
        action=action,
        author=name,
        email=email,
        commit=m.group("commit"),
        summary=summary.strip(),
    )


def rewrite_todo(text: str, author: str, match: str = "exact") -> str:
    """
    Rewrite the text of a rebase todo file for author.

    Lines that are not plan entries pass through byte for byte. Plan entry
    lines only get their action word replaced.
    """
    lines = text.splitlines(keepends=True)

    positions: List[int] = []
    entries: List[PlanEntry] = []
    for idx, line in enumerate(lines):
        entry = parse_plan_line(line)
        if entry is not None:
            positions.append(idx)
            entries.append(entry)

    rewritten = rewrite_plan(entries, author, match)

    replacements: Dict[int, str] = {}
    for idx, before, after in zip(positions, entries, rewritten):
        if before.action != after.action:
            replacements[idx] = _replace_action(lines[idx], after.action)

    return "".join(replacements.get(i, line) for i, line in enumerate(lines))


def split_identity(identity: str) -> Tuple[str, str]:
    """
    Split "Name <email>" into its parts. Without an email part the whole
    text is the name.
    """
    identity = identity.strip()
    m = _IDENTITY_RE.match(identity)
    if m is None:
        return identity, ""
    return m.group("name"), m.group("email")


def author_matcher(author: str, match: str = "exact") -> Callable[[str, str], bool]:
    """
    Build the predicate deciding whether (name, email) belongs to the target.

    "exact" compares the name for equality. "pattern" searches
    "name <email>" with author as a Python regular expression. Locating the
    segment and rewriting the plan both use this predicate.
    """
    if match == "exact":
        return lambda name, email="": name == author

    if match == "pattern":
        try:
            compiled = re.compile(author)
        except re.error as e:
            raise PlanFormatError(f"Invalid author pattern {author!r}: {e}") from e
        return lambda name, email="": compiled.search(f"{name} <{email}>") is not None

    raise ValueError(f"Unsupported author match mode: {match}")


def count_actions(entries: Sequence[PlanEntry]) -> Dict[str, int]:
    counts = {PICK: 0, SQUASH: 0}
    for entry in entries:
        counts[entry.action] = counts.get(entry.action, 0) + 1
    return counts


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------

def _with_action(entry: PlanEntry, action: str) -> PlanEntry:
    if entry.action == action:
        return entry
    return replace(entry, action=action)


def _replace_action(line: str, action: str) -> str:
    m = _PLAN_LINE_RE.match(line.rstrip("\r\n"))
    if m is None:
        raise PlanFormatError(f"Not a plan line: {line.rstrip()!r}")
    start, end = m.span("action")
    return line[:start] + action + line[end:]
