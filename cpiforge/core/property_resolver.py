"""Property resolver — builds the property tree one job renders against.

Merge order, lowest to highest precedence:

1. the job's declared defaults (from the release);
2. the manifest's overrides for that job, merged leaf by leaf;
3. the reserved ``network`` subtree, derived from the manifest's network
   configuration.

The ``network`` subtree always exists and holds every placeholder the job
declares (empty string when the job has no network binding).  Neither
defaults nor overrides can shadow it.  Manifest paths the job does not
declare are passed through untouched.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from typing import Any

from cpiforge.models.release import Job

logger = logging.getLogger(__name__)

NETWORK_ROOT = "network"

_MISSING = object()


def expand_dotted(flat: Mapping[str, Any]) -> dict[str, Any]:
    """Turn ``{"a.b": 1}`` into ``{"a": {"b": 1}}``.

    Nested mappings are expanded recursively, so mixed forms such as
    ``{"a": {"b.c": 1}}`` are accepted.  Keys are applied in sorted order so
    the result does not depend on input ordering.

    When one key names a value and another names a subtree below it (for
    example ``{"a": 5, "a.b": 1}``) the longer, dotted key wins and a warning
    names the discarded path.
    """
    tree: dict[str, Any] = {}
    for dotted in sorted(flat):
        value = flat[dotted]
        if isinstance(value, Mapping):
            value = expand_dotted(value)
        else:
            value = copy.deepcopy(value)
        parts = str(dotted).split(".")
        node = tree
        for depth, part in enumerate(parts[:-1]):
            child = node.get(part)
            if not isinstance(child, dict):
                if part in node:
                    _warn_shadowed(".".join(parts[: depth + 1]), dotted)
                child = {}
                node[part] = child
            node = child
        leaf = parts[-1]
        existing = node.get(leaf)
        if isinstance(value, dict) and isinstance(existing, dict):
            node[leaf] = deep_merge(existing, value)
        else:
            if leaf in node:
                _warn_shadowed(str(dotted), dotted)
            node[leaf] = value
    return tree


def _warn_shadowed(path: str, winner: str) -> None:
    logger.warning(
        "Property '%s' is set both as a value and as a subtree; using '%s'",
        path,
        winner,
    )


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Return a new tree: *override* wins at the leaves, *base* fills gaps."""
    merged: dict[str, Any] = copy.deepcopy(dict(base))
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def lookup_path(tree: Mapping[str, Any], path: str, default: Any = _MISSING) -> Any:
    """Return the value at dotted *path*.

    Raises ``KeyError`` when the path is absent and no *default* is given.
    """
    node: Any = tree
    for part in path.split("."):
        if not isinstance(node, Mapping) or part not in node:
            if default is _MISSING:
                raise KeyError(path)
            return default
        node = node[part]
    return node


class PropertyResolver:
    """Merges defaults, manifest overrides and network values for one job."""

    def resolve(
        self,
        job: Job,
        overrides: Mapping[str, Any] | None = None,
        network_values: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        tree = expand_dotted(job.default_properties())
        if overrides:
            tree = deep_merge(tree, expand_dotted(overrides))

        if NETWORK_ROOT in tree:
            logger.warning(
                "Job %s: ignoring '%s' properties from release or manifest; "
                "that path is reserved for network values",
                job.name,
                NETWORK_ROOT,
            )
            del tree[NETWORK_ROOT]

        network: dict[str, Any] = {name: "" for name in job.network_placeholders}
        for name, value in (network_values or {}).items():
            network[name] = "" if value is None else copy.deepcopy(value)
        tree[NETWORK_ROOT] = network
        return tree
