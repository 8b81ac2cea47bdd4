# shrine/config.py
"""
Configuration loading and validation.

Responsibilities:
- Load the optional YAML policy
- Validate against JSON Schema
- Expose a normalised config object with defaults filled in

This module does NOT:
- interact with git
- check semantic constraints the schema cannot express (see shrine.validation)
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import json
import yaml
from jsonschema import Draft202012Validator


class ConfigError(RuntimeError):
    pass


@dataclass(frozen=True)
class AuthorConfig:
    match: str = "exact"  # exact | pattern


@dataclass(frozen=True)
class BoundaryConfig:
    on_insufficient_history: str = "fail"  # fail | root


@dataclass(frozen=True)
class MarkerConfig:
    prefix: str = "shrine"


@dataclass(frozen=True)
class OutputConfig:
    branch: str = "shrine"
    keep_remote: bool = False


@dataclass(frozen=True)
class Config:
    author: AuthorConfig = field(default_factory=AuthorConfig)
    boundary: BoundaryConfig = field(default_factory=BoundaryConfig)
    markers: MarkerConfig = field(default_factory=MarkerConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    gc: bool = True
    hash_len: int = 12


def default_schema_path() -> Path:
    """
    The schema ships inside the package so the CLI works from any CWD.
    """
    return Path(__file__).resolve().parent / "schema.json"


def _load_schema(schema_path: Path) -> Dict[str, Any]:
    """
    Load JSON Schema from a schema.json file.
    """
    try:
        raw = schema_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to read schema file: {schema_path}") from e

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Schema is not valid JSON: {schema_path}") from e

    if not isinstance(parsed, dict):
        raise ConfigError(f"Schema must be a JSON object: {schema_path}")

    return parsed


def _load_yaml(config_path: Path) -> Dict[str, Any]:
    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to load config: {config_path}") from e

    # An empty policy file means "all defaults"
    if raw is None:
        return {}

    if not isinstance(raw, dict):
        raise ConfigError(f"Config must be a mapping at top level: {config_path}")

    return raw


def parse_config(raw_config: Dict[str, Any], schema: Dict[str, Any]) -> Config:
    """
    Validate a raw mapping against schema and build a Config.

    Raises ConfigError on validation failure.
    """
    validator = Draft202012Validator(schema)
    errors = sorted(validator.iter_errors(raw_config), key=lambda e: list(e.path))

    if errors:
        messages = []
        for err in errors:
            path = ".".join(str(p) for p in err.path)
            prefix = path if path else "<root>"
            messages.append(f"{prefix}: {err.message}")
        raise ConfigError("Invalid configuration:\n" + "\n".join(messages))

    author = raw_config.get("author", {})
    boundary = raw_config.get("boundary", {})
    markers = raw_config.get("markers", {})
    output = raw_config.get("output", {})
    cleanup = raw_config.get("cleanup", {})
    report = raw_config.get("report", {})

    return Config(
        author=AuthorConfig(match=str(author.get("match", "exact"))),
        boundary=BoundaryConfig(
            on_insufficient_history=str(boundary.get("on_insufficient_history", "fail")),
        ),
        markers=MarkerConfig(prefix=str(markers.get("prefix", "shrine"))),
        output=OutputConfig(
            branch=str(output.get("branch", "shrine")),
            keep_remote=bool(output.get("keep_remote", False)),
        ),
        gc=bool(cleanup.get("gc", True)),
        hash_len=int(report.get("hash_len", 12)),
    )


def load_config(config_path: Optional[Path], schema_path: Optional[Path] = None) -> Config:
    """
    Load and validate configuration. No path means the default policy.

    Raises ConfigError on validation failure.
    """
    if config_path is None:
        return Config()

    raw_config = _load_yaml(config_path)
    schema = _load_schema(schema_path or default_schema_path())

    return parse_config(raw_config, schema)
