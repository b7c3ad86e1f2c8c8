"""Release models — packages, jobs and their property declarations.

Constructed once from release metadata and immutable thereafter.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from cpiforge.core.hasher import compute_job_fingerprint


class Package(BaseModel):
    """A release package as published in the release metadata.

    ``source_fingerprint`` identifies the package source only.  The compile
    fingerprint, which also folds in every transitive dependency, is computed
    by ``PackageGraph.fingerprint``.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    version: str = ""
    source_fingerprint: str
    dependencies: tuple[str, ...] = ()
    source_dir: Path | None = None


class PropertyDefinition(BaseModel):
    """A property declared in a job spec.  ``default=None`` means no default."""

    model_config = ConfigDict(frozen=True)

    description: str = ""
    default: Any = None


class Job(BaseModel):
    """A release job: template sources plus declared properties.

    Parameters
    ----------
    templates:
        Output path (relative, e.g. ``bin/cpi``) -> template source.
    properties:
        Dotted property path -> declaration.
    network_placeholders:
        Names resolved under the reserved ``network.`` path (``ip`` ...).
    packages:
        Names of release packages the job's processes use.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    templates: dict[str, str] = Field(default_factory=dict)
    properties: dict[str, PropertyDefinition] = Field(default_factory=dict)
    network_placeholders: tuple[str, ...] = ()
    packages: tuple[str, ...] = ()

    def default_properties(self) -> dict[str, Any]:
        """Return dotted path -> default for every property with a default."""
        return {
            path: definition.default
            for path, definition in sorted(self.properties.items())
            if definition.default is not None
        }

    @property
    def fingerprint(self) -> str:
        """Hash of template sources and default properties."""
        return compute_job_fingerprint(
            self.name, dict(self.templates), self.default_properties()
        )


class ReleaseMetadata(BaseModel):
    """Name and version of a loaded release."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str = ""
