"""Tests for DeploymentWorkspace — descriptor, layout, clean."""

from __future__ import annotations

import json
import uuid
from pathlib import Path

import pytest

from cpiforge.core.errors import WorkspaceError, WorkspaceNotFoundError
from cpiforge.core.workspace import (
    BLOBS_DIR,
    COMPILED_PACKAGES_INDEX,
    DESCRIPTOR_FILE,
    TEMPLATES_INDEX,
    DeploymentWorkspace,
)
from cpiforge.models.index import IndexKey, IndexValue


class TestDeploymentWorkspace:
    def test_first_open_assigns_uuid(self, workspace, tmp_dir: Path):
        uuid.UUID(workspace.uuid)
        descriptor = json.loads((tmp_dir / "manifest" / DESCRIPTOR_FILE).read_text())
        assert descriptor["uuid"] == workspace.uuid

    def test_reopen_keeps_uuid(self, workspace, tmp_dir: Path):
        again = DeploymentWorkspace.open(tmp_dir / "home", descriptor_dir=tmp_dir / "manifest")
        assert again.uuid == workspace.uuid
        assert again.path == workspace.path

    def test_layout(self, workspace, tmp_dir: Path):
        assert workspace.path == tmp_dir / "home" / workspace.uuid
        assert workspace.blob_store.base_path == workspace.path / BLOBS_DIR
        assert workspace.compiled_packages.path == workspace.path / COMPILED_PACKAGES_INDEX
        assert workspace.rendered_templates.path == workspace.path / TEMPLATES_INDEX

    def test_descriptor_defaults_to_base(self, tmp_dir: Path):
        workspace = DeploymentWorkspace.open(tmp_dir / "home")
        assert workspace.descriptor_path == tmp_dir / "home" / DESCRIPTOR_FILE

    def test_indices_persist_across_opens(self, workspace, tmp_dir: Path):
        stored = workspace.blob_store.put(b"compiled")
        key = IndexKey(name="pkg", fingerprint="fp")
        workspace.compiled_packages.record(
            key, IndexValue(blob_id=stored.blob_id, digest=stored.digest)
        )

        again = DeploymentWorkspace.open(tmp_dir / "home", descriptor_dir=tmp_dir / "manifest")
        value = again.compiled_packages.lookup(key)
        assert value is not None
        assert again.blob_store.get(value.blob_id) == b"compiled"

    def test_clean_removes_everything(self, workspace):
        workspace.blob_store.put(b"data")
        workspace.clean()
        assert not workspace.path.exists()
        assert not workspace.descriptor_path.exists()

    def test_clean_is_idempotent(self, workspace):
        workspace.clean()
        workspace.clean()

    def test_clean_then_open_creates_new_uuid(self, workspace, tmp_dir: Path):
        old = workspace.uuid
        workspace.clean()
        fresh = DeploymentWorkspace.open(tmp_dir / "home", descriptor_dir=tmp_dir / "manifest")
        assert fresh.uuid != old
        assert len(fresh.compiled_packages) == 0

    def test_corrupt_descriptor(self, tmp_dir: Path):
        descriptor_dir = tmp_dir / "manifest"
        descriptor_dir.mkdir()
        (descriptor_dir / DESCRIPTOR_FILE).write_text("not json")
        with pytest.raises(WorkspaceError):
            DeploymentWorkspace.open(tmp_dir / "home", descriptor_dir=descriptor_dir)

    def test_open_without_create_writes_nothing(self, tmp_dir: Path):
        with pytest.raises(WorkspaceNotFoundError):
            DeploymentWorkspace.open(
                tmp_dir / "home", descriptor_dir=tmp_dir / "manifest", create=False
            )
        assert not (tmp_dir / "manifest").exists()
        assert not (tmp_dir / "home").exists()

    def test_open_without_create_loads_existing(self, workspace, tmp_dir: Path):
        again = DeploymentWorkspace.open(
            tmp_dir / "home", descriptor_dir=tmp_dir / "manifest", create=False
        )
        assert again.uuid == workspace.uuid
