# shrine/validation.py
"""
Semantic validation of configuration and invocation arguments.

Responsibilities:
- Check constraints the JSON Schema cannot express
- Produce actionable errors with field path context

This module does NOT:
- load YAML files
- interact with git
"""

from __future__ import annotations

from pathlib import Path
import re

from shrine.config import Config


class ValidationError(RuntimeError):
    """
    Raised when configuration or arguments are well formed but unusable.

    Attributes:
        path: dotted path of the failing field, for example markers.prefix
    """

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        super().__init__(f"{path}: {message}")


# One ref component, close to git check-ref-format without shelling out.
_REF_COMPONENT_RE = re.compile(r"^(?!\.)(?!.*\.\.)(?!.*\.lock$)(?!.*@\{)[^\x00-\x20\x7f~^:?*\[\\/]+(?<!\.)$")


def validate_config(cfg: Config) -> Config:
    """
    Check that ref names in the policy are usable.

    Enforces:
    - markers.prefix is a single ref component
    - output.branch is a valid branch name that cannot collide with a marker
    """
    _validate_ref_component("markers.prefix", cfg.markers.prefix)

    for component in cfg.output.branch.split("/"):
        _validate_ref_component("output.branch", component)

    for label in ("start", "end"):
        if cfg.output.branch == f"{cfg.markers.prefix}-{label}":
            raise ValidationError("output.branch", "must not equal a marker branch name")

    return cfg


def validate_paths(original_path: Path, shrine_path: Path, *, force: bool) -> None:
    """
    Refuse destinations that would destroy the original or unconfirmed data.
    """
    original = original_path.expanduser().resolve()
    shrine = shrine_path.expanduser().resolve()

    if shrine == original or shrine in original.parents:
        raise ValidationError("shrine", f"{shrine} would overwrite the original repository")

    git_dir = original / ".git"
    if not git_dir.exists() and (original / "objects").is_dir():
        # bare repository
        git_dir = original
    if shrine == git_dir or git_dir in shrine.parents:
        raise ValidationError("shrine", f"{shrine} is inside the original's git directory")

    if shrine.exists() and not force:
        if shrine.is_file() or any(shrine.iterdir()):
            raise ValidationError("shrine", f"{shrine} is not empty; pass --force to overwrite it")


def validate_author(author: str) -> str:
    if not author.strip():
        raise ValidationError("author", "must not be empty")
    return author


def _validate_ref_component(path: str, value: str) -> None:
    if not _REF_COMPONENT_RE.match(value):
        raise ValidationError(path, f"{value!r} is not a valid ref name component")
