"""Loads an extracted release directory into ``Job`` / ``Package`` models.

Directory layout::

    {release_dir}/
        release.MF                      — optional: name, version, package fingerprints
        jobs/{job}/spec                 — YAML: templates, packages, properties
        jobs/{job}/templates/{src}
        packages/{pkg}/spec             — YAML: dependencies
        packages/{pkg}/packaging        — build script, plus any source files

Unpacking release tarballs is the caller's concern; this loader only reads
the directory tree.  A package fingerprint missing from ``release.MF`` is
computed from the package directory's files.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from cpiforge.core.dependency_graph import PackageGraph
from cpiforge.core.errors import ReleaseLoadError
from cpiforge.core.hasher import canonical_json_bytes, sha256_hex
from cpiforge.core.property_resolver import NETWORK_ROOT
from cpiforge.core.template_renderer import referenced_paths
from cpiforge.loaders.yaml_file import load_yaml_mapping
from cpiforge.models.release import Job, Package, PropertyDefinition, ReleaseMetadata

logger = logging.getLogger(__name__)


def directory_fingerprint(root: Path) -> str:
    """SHA-256 over every file's relative path and content."""
    entries = [
        [path.relative_to(root).as_posix(), sha256_hex(path.read_bytes())]
        for path in sorted(root.rglob("*"))
        if path.is_file()
    ]
    return sha256_hex(canonical_json_bytes(entries))


class DirectoryRelease:
    """A release read from an extracted directory.

    Parameters
    ----------
    release_dir:
        Root of the extracted release.
    """

    def __init__(self, release_dir: Path) -> None:
        self._root = Path(release_dir)
        if not self._root.is_dir():
            raise ReleaseLoadError(f"Release directory not found: {self._root}")

        manifest_path = self._root / "release.MF"
        manifest = (
            load_yaml_mapping(manifest_path, ReleaseLoadError)
            if manifest_path.exists()
            else {}
        )
        self.metadata = ReleaseMetadata(
            name=str(manifest.get("name") or self._root.name),
            version=str(manifest.get("version") or ""),
        )
        self._manifest_packages: dict[str, dict[str, Any]] = {
            str(entry.get("name")): entry
            for entry in manifest.get("packages") or []
            if isinstance(entry, dict)
        }
        self._jobs = self._load_jobs()
        self._packages = self._load_packages()
        logger.debug(
            "Loaded release %s: %d jobs, %d packages",
            self.name,
            len(self._jobs),
            len(self._packages),
        )

    @property
    def name(self) -> str:
        return self.metadata.name

    def jobs(self) -> list[Job]:
        return list(self._jobs)

    def packages(self) -> PackageGraph:
        return PackageGraph(self._packages)

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def _load_jobs(self) -> list[Job]:
        jobs_dir = self._root / "jobs"
        if not jobs_dir.is_dir():
            return []
        return [
            self._load_job(job_dir)
            for job_dir in sorted(jobs_dir.iterdir())
            if job_dir.is_dir()
        ]

    def _load_job(self, job_dir: Path) -> Job:
        spec = load_yaml_mapping(job_dir / "spec", ReleaseLoadError)
        name = str(spec.get("name") or job_dir.name)

        templates: dict[str, str] = {}
        for source_name, output_path in (spec.get("templates") or {}).items():
            source = job_dir / "templates" / source_name
            if not source.is_file():
                raise ReleaseLoadError(f"Job '{name}' is missing template {source_name}")
            templates[str(output_path)] = source.read_text(encoding="utf-8")

        properties = {
            str(path): PropertyDefinition(
                description=str((definition or {}).get("description") or ""),
                default=(definition or {}).get("default"),
            )
            for path, definition in (spec.get("properties") or {}).items()
        }

        placeholders = set(spec.get("network_placeholders") or [])
        prefix = f"{NETWORK_ROOT}."
        for output_path, source in templates.items():
            try:
                refs = referenced_paths(source)
            except ValueError as exc:
                raise ReleaseLoadError(f"Job '{name}' template {output_path}: {exc}") from exc
            placeholders.update(ref[len(prefix):] for ref in refs if ref.startswith(prefix))

        return Job(
            name=name,
            templates=templates,
            properties=properties,
            network_placeholders=tuple(sorted(placeholders)),
            packages=tuple(spec.get("packages") or ()),
        )

    # ------------------------------------------------------------------
    # Packages
    # ------------------------------------------------------------------

    def _load_packages(self) -> list[Package]:
        packages_dir = self._root / "packages"
        if not packages_dir.is_dir():
            return []
        return [
            self._load_package(package_dir)
            for package_dir in sorted(packages_dir.iterdir())
            if package_dir.is_dir()
        ]

    def _load_package(self, package_dir: Path) -> Package:
        spec_path = package_dir / "spec"
        spec = load_yaml_mapping(spec_path, ReleaseLoadError) if spec_path.exists() else {}
        name = str(spec.get("name") or package_dir.name)
        published = self._manifest_packages.get(name, {})

        dependencies = spec.get("dependencies") or published.get("dependencies") or []
        fingerprint = published.get("fingerprint") or directory_fingerprint(package_dir)
        return Package(
            name=name,
            version=str(published.get("version") or ""),
            source_fingerprint=str(fingerprint),
            dependencies=tuple(str(dep) for dep in dependencies),
            source_dir=package_dir,
        )
