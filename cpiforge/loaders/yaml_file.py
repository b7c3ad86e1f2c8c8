"""Shared YAML reading for release and manifest loaders."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from cpiforge.core.errors import DeployError


def load_yaml_mapping(path: Path, error_cls: type[DeployError]) -> dict[str, Any]:
    """Read *path* as a YAML mapping, raising *error_cls* on any problem.

    Values are normalized to JSON types (dates become ISO strings) so they can
    take part in canonical hashing.
    """
    path = Path(path)
    if not path.is_file():
        raise error_cls(f"File not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise error_cls(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise error_cls(f"Expected a mapping in {path}, got {type(data).__name__}")
    return json.loads(json.dumps(data, default=str))
