"""Canonical hashing helpers for fingerprints and blob digests.

Fingerprints are pure functions of content: the same package source with the
same dependency fingerprints always hashes to the same value.  Timestamps
never participate.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes — deterministic, sorted, compact.

    - sorted keys
    - no whitespace separators (",", ":")
    - ensure_ascii=True
    - UTF-8 encoding
    """
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def compute_package_fingerprint(
    name: str,
    source_fingerprint: str,
    dependency_fingerprints: dict[str, str],
) -> str:
    """SHA-256 of canonical(name + source + sorted dependency fingerprints).

    Because each dependency fingerprint already folds in its own dependencies,
    a change anywhere upstream changes every dependent fingerprint.
    """
    payload = {
        "name": name,
        "source": source_fingerprint,
        "dependencies": sorted(dependency_fingerprints.items()),
    }
    return sha256_hex(canonical_json_bytes(payload))


def compute_job_fingerprint(
    name: str,
    templates: dict[str, str],
    defaults: dict[str, Any],
) -> str:
    """SHA-256 of canonical(name + template sources + default properties)."""
    payload = {"name": name, "templates": templates, "defaults": defaults}
    return sha256_hex(canonical_json_bytes(payload))


def compute_render_fingerprint(
    job_fingerprint: str,
    properties: dict[str, Any],
    network_shape: dict[str, Any],
    referenced_network: dict[str, Any],
) -> str:
    """SHA-256 identifying one rendering of a job against a property tree."""
    payload = {
        "job": job_fingerprint,
        "properties": properties,
        "network_shape": network_shape,
        "network_values": referenced_network,
    }
    return sha256_hex(canonical_json_bytes(payload))
