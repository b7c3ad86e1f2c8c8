"""Collaborator protocols consumed by the deploy pipeline.

The core never parses YAML or unpacks tarballs itself; it is handed a
``Release`` and a ``Manifest`` that already expose in-memory structures.

Implementations:
1. **Directory loaders** — ``cpiforge.loaders`` (release dir + manifest YAML).
2. **In-memory** — ``InMemoryRelease`` / ``InMemoryManifest`` for embedding
   and tests.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Protocol, runtime_checkable

from cpiforge.core.dependency_graph import PackageGraph
from cpiforge.models.release import Job, Package


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class Release(Protocol):
    """A loaded release: its name, jobs and package graph."""

    @property
    def name(self) -> str:
        ...

    def jobs(self) -> list[Job]:
        """Return the release's jobs."""
        ...

    def packages(self) -> PackageGraph:
        """Return the release's package dependency graph."""
        ...


@runtime_checkable
class Manifest(Protocol):
    """Per-job views over a deployment manifest."""

    def property_overrides_for(self, job_name: str) -> dict[str, Any]:
        """Return the manifest's property tree for *job_name* (may be empty)."""
        ...

    def network_values_for(self, job_name: str) -> dict[str, Any]:
        """Return network-derived values for *job_name* (may be empty)."""
        ...


# ---------------------------------------------------------------------------
# In-memory implementations
# ---------------------------------------------------------------------------


class InMemoryRelease:
    """Release built directly from model objects."""

    def __init__(
        self,
        name: str,
        jobs: Iterable[Job] = (),
        packages: Iterable[Package] = (),
        version: str = "",
    ) -> None:
        self.name = name
        self.version = version
        self._jobs = list(jobs)
        self._packages = list(packages)

    def jobs(self) -> list[Job]:
        return list(self._jobs)

    def packages(self) -> PackageGraph:
        return PackageGraph(self._packages)


class InMemoryManifest:
    """Manifest built from plain dicts keyed by job name."""

    def __init__(
        self,
        overrides: Mapping[str, dict[str, Any]] | None = None,
        networks: Mapping[str, dict[str, Any]] | None = None,
    ) -> None:
        self._overrides = dict(overrides or {})
        self._networks = dict(networks or {})

    def property_overrides_for(self, job_name: str) -> dict[str, Any]:
        return dict(self._overrides.get(job_name, {}))

    def network_values_for(self, job_name: str) -> dict[str, Any]:
        return dict(self._networks.get(job_name, {}))
