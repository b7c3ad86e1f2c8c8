"""Deployment workspace — the persistent home of one deployment's caches.

Directory layout::

    {descriptor_dir}/deployment.json           — {"uuid": ..., "created_at": ...}
    {base_location}/{uuid}/
        compiled_packages.json                 — compiled-package index
        templates.json                         — rendered-template index
        blobs/                                 — blob store

The descriptor normally sits next to the deployment manifest while the
workspace lives under the user's cpiforge home, so every deploy of the same
manifest lands in the same workspace.  Only one process may hold a workspace
at a time; locking is the caller's concern.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from pydantic import ValidationError

from cpiforge.core.blob_store import BlobStore, atomic_write_bytes
from cpiforge.core.errors import WorkspaceError, WorkspaceNotFoundError
from cpiforge.core.index import ArtifactIndex
from cpiforge.models.workspace import DeploymentDescriptor

logger = logging.getLogger(__name__)

DESCRIPTOR_FILE = "deployment.json"
COMPILED_PACKAGES_INDEX = "compiled_packages.json"
TEMPLATES_INDEX = "templates.json"
BLOBS_DIR = "blobs"


class DeploymentWorkspace:
    """An opened workspace.  Use ``DeploymentWorkspace.open``.

    The workspace exclusively owns its indices and blob store; compiler and
    renderer receive these handles and never touch the files directly.
    """

    def __init__(
        self,
        base_location: Path,
        descriptor_path: Path,
        descriptor: DeploymentDescriptor,
    ) -> None:
        self._base = Path(base_location)
        self._descriptor_path = Path(descriptor_path)
        self._descriptor = descriptor
        self.path.mkdir(parents=True, exist_ok=True)
        self.blob_store = BlobStore(self.path / BLOBS_DIR)
        self.compiled_packages = ArtifactIndex(self.path / COMPILED_PACKAGES_INDEX)
        self.rendered_templates = ArtifactIndex(self.path / TEMPLATES_INDEX)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @classmethod
    def open(
        cls,
        base_location: Path,
        descriptor_dir: Path | None = None,
        *,
        create: bool = True,
    ) -> DeploymentWorkspace:
        """Load the workspace, creating it (and its UUID) on first use.

        Parameters
        ----------
        base_location:
            Directory under which ``{uuid}/`` is created.
        descriptor_dir:
            Directory holding ``deployment.json``; defaults to
            *base_location*.
        create:
            When false, nothing is written: a missing descriptor raises
            ``WorkspaceNotFoundError``.
        """
        base = Path(base_location).expanduser()
        descriptor_path = Path(descriptor_dir or base).expanduser() / DESCRIPTOR_FILE

        if descriptor_path.is_file():
            try:
                descriptor = DeploymentDescriptor.model_validate_json(
                    descriptor_path.read_bytes()
                )
            except ValidationError as exc:
                raise WorkspaceError(
                    f"Deployment descriptor {descriptor_path} is unreadable: {exc}"
                ) from exc
            logger.debug("Loaded workspace %s from %s", descriptor.uuid, descriptor_path)
        elif not create:
            raise WorkspaceNotFoundError(f"No workspace yet: {descriptor_path} does not exist")
        else:
            descriptor = DeploymentDescriptor()
            try:
                descriptor_path.parent.mkdir(parents=True, exist_ok=True)
                atomic_write_bytes(
                    descriptor_path, descriptor.model_dump_json(indent=2).encode("utf-8")
                )
            except OSError as exc:
                raise WorkspaceError(
                    f"Cannot write deployment descriptor {descriptor_path}: {exc}"
                ) from exc
            logger.info("Created workspace %s", descriptor.uuid)

        return cls(base, descriptor_path, descriptor)

    def clean(self) -> None:
        """Remove the workspace directory and its descriptor.

        Idempotent: safe to call when nothing was ever created.
        """
        if self.path.exists():
            shutil.rmtree(self.path)
        self._descriptor_path.unlink(missing_ok=True)
        logger.info("Removed workspace %s", self.uuid)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def uuid(self) -> str:
        return self._descriptor.uuid

    @property
    def path(self) -> Path:
        """Directory holding the indices and blobs."""
        return self._base / self._descriptor.uuid

    @property
    def descriptor_path(self) -> Path:
        return self._descriptor_path

    @property
    def descriptor(self) -> DeploymentDescriptor:
        return self._descriptor
