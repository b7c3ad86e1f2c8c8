"""Shared test fixtures for cpiforge."""

from __future__ import annotations

import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from cpiforge.collaborators import InMemoryManifest, InMemoryRelease
from cpiforge.core.archive import pack_files
from cpiforge.core.blob_store import BlobStore
from cpiforge.core.index import ArtifactIndex
from cpiforge.core.workspace import DeploymentWorkspace
from cpiforge.models.release import Job, Package, PropertyDefinition

CPI_TEMPLATE = """#!/bin/bash
GLOBAL_PROPERTY="<%= p('fake_cpi_default_property') %>"
JOB_PROPERTY="<%= p('fake_cpi_specified_property.second_level') %>"
IP="<%= p('network.ip') %>"
"""


# ---------------------------------------------------------------------------
# Fake compile executor
# ---------------------------------------------------------------------------


class RecordingExecutor:
    """Compile executor that packs a ``compiled_file`` and records calls."""

    def __init__(self, fail_on: set[str] | None = None) -> None:
        self.calls: list[tuple[str, dict[str, str]]] = []
        self.fail_on = set(fail_on or ())
        self._lock = threading.Lock()

    @property
    def compiled_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def run_compile_action(
        self, package: Package, dependency_blob_ids: dict[str, str]
    ) -> bytes:
        with self._lock:
            self.calls.append((package.name, dict(dependency_blob_ids)))
        if package.name in self.fail_on:
            raise RuntimeError(f"packaging script for {package.name} exited 1")
        content = f"{package.name}:{package.source_fingerprint}:{sorted(dependency_blob_ids)}"
        return pack_files({"compiled_file": content.encode("utf-8")})


# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def blob_store(tmp_dir: Path) -> BlobStore:
    """Provide a fresh BlobStore in a temp directory."""
    return BlobStore(tmp_dir / "blobs")


@pytest.fixture
def index(tmp_dir: Path) -> ArtifactIndex:
    """Provide an empty ArtifactIndex backed by a temp JSON file."""
    return ArtifactIndex(tmp_dir / "compiled_packages.json")


@pytest.fixture
def workspace(tmp_dir: Path) -> DeploymentWorkspace:
    """Provide a freshly created DeploymentWorkspace."""
    return DeploymentWorkspace.open(tmp_dir / "home", descriptor_dir=tmp_dir / "manifest")


@pytest.fixture
def executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture
def make_executor() -> Callable[..., RecordingExecutor]:
    """Factory fixture: a RecordingExecutor failing for the given packages."""

    def _factory(*fail_on: str) -> RecordingExecutor:
        return RecordingExecutor(fail_on=set(fail_on))

    return _factory


# ---------------------------------------------------------------------------
# Release fixtures — the two-package, one-job CPI release
# ---------------------------------------------------------------------------


@pytest.fixture
def make_package() -> Callable[..., Package]:
    """Factory fixture: build a Package with sensible defaults."""

    def _factory(name: str, *deps: str, source: str | None = None) -> Package:
        return Package(
            name=name,
            version="1",
            source_fingerprint=source or f"src-{name}",
            dependencies=deps,
        )

    return _factory


@pytest.fixture
def cpi_job() -> Job:
    return Job(
        name="cpi",
        templates={"bin/cpi": CPI_TEMPLATE},
        properties={
            "fake_cpi_default_property": PropertyDefinition(
                description="global default", default="fake_cpi_default_value"
            ),
            "fake_cpi_specified_property.second_level": PropertyDefinition(
                description="set by the manifest"
            ),
        },
        network_placeholders=("ip",),
        packages=("compiled_package",),
    )


@pytest.fixture
def cpi_packages(make_package: Callable[..., Package]) -> list[Package]:
    return [
        make_package("compiled_package", "dependency_package"),
        make_package("dependency_package"),
    ]


@pytest.fixture
def cpi_release(cpi_job: Job, cpi_packages: list[Package]) -> InMemoryRelease:
    return InMemoryRelease("fake-cpi-release", jobs=[cpi_job], packages=cpi_packages)


@pytest.fixture
def cpi_overrides() -> dict[str, Any]:
    return {"fake_cpi_specified_property": {"second_level": "fake_specified_property_value"}}


@pytest.fixture
def manifest(cpi_overrides: dict[str, Any]) -> InMemoryManifest:
    return InMemoryManifest(overrides={"cpi": cpi_overrides})


# ---------------------------------------------------------------------------
# On-disk release directory
# ---------------------------------------------------------------------------


def write_release_dir(root: Path, *, include_cpi: bool = True) -> Path:
    """Write an extracted test release under *root* and return its path."""
    release = root / "test_release"
    (release / "packages" / "dependency_package").mkdir(parents=True)
    (release / "packages" / "compiled_package").mkdir(parents=True)

    (release / "release.MF").write_text("name: test-release\nversion: '0+dev.1'\n")

    dep = release / "packages" / "dependency_package"
    (dep / "spec").write_text("name: dependency_package\nfiles: []\n")
    (dep / "packaging").write_text(
        'set -e\necho "dependency output" > "$BOSH_INSTALL_TARGET/dependency_file"\n'
    )

    pkg = release / "packages" / "compiled_package"
    (pkg / "spec").write_text(
        "name: compiled_package\ndependencies:\n- dependency_package\n"
    )
    (pkg / "packaging").write_text(
        "set -e\n"
        'cat "$BOSH_PACKAGES_DIR/dependency_package/dependency_file" '
        '> "$BOSH_INSTALL_TARGET/compiled_file"\n'
    )

    if include_cpi:
        job = release / "jobs" / "cpi"
        (job / "templates").mkdir(parents=True)
        (job / "templates" / "cpi.erb").write_text(CPI_TEMPLATE)
        (job / "spec").write_text(
            "name: cpi\n"
            "templates:\n"
            "  cpi.erb: bin/cpi\n"
            "packages:\n"
            "- compiled_package\n"
            "properties:\n"
            "  fake_cpi_default_property:\n"
            "    description: a global default\n"
            "    default: fake_cpi_default_value\n"
            "  fake_cpi_specified_property.second_level:\n"
            "    description: set by the deployment manifest\n"
        )
    return release


MANIFEST_YAML = """---
name: fake-deployment
cloud_provider:
  properties:
    fake_cpi_specified_property:
      second_level: fake_specified_property_value
"""


@pytest.fixture
def release_dir(tmp_dir: Path) -> Path:
    return write_release_dir(tmp_dir)


@pytest.fixture
def manifest_file(tmp_dir: Path) -> Path:
    path = tmp_dir / "deployment" / "micro_deployment.yml"
    path.parent.mkdir(parents=True)
    path.write_text(MANIFEST_YAML)
    return path


@pytest.fixture
def non_cpi_release_dir(tmp_dir: Path) -> Path:
    return write_release_dir(tmp_dir, include_cpi=False)
