"""CLI state — which deployment manifest the ``deploy`` command targets.

Stored as ``{home}/config.json``.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError

from cpiforge.config import DeployConfig
from cpiforge.core.blob_store import atomic_write_bytes
from cpiforge.core.errors import DeploymentNotSetError
from cpiforge.core.workspace import DeploymentWorkspace


class CliState(BaseModel):
    """Persisted CLI selections."""

    model_config = ConfigDict(frozen=True)

    deployment: Path | None = None


def load_state(config: DeployConfig) -> CliState:
    path = config.cli_state_path
    if not path.is_file():
        return CliState()
    try:
        return CliState.model_validate_json(path.read_bytes())
    except ValidationError:
        return CliState()


def save_state(config: DeployConfig, state: CliState) -> None:
    path = config.cli_state_path
    path.parent.mkdir(parents=True, exist_ok=True)
    atomic_write_bytes(path, state.model_dump_json(indent=2).encode("utf-8"))


def current_manifest(config: DeployConfig) -> Path:
    """Return the manifest set by ``cpiforge deployment``."""
    manifest = load_state(config).deployment
    if manifest is None:
        raise DeploymentNotSetError(
            "No deployment set. Run 'cpiforge deployment MANIFEST' first."
        )
    if not manifest.is_file():
        raise DeploymentNotSetError(f"Deployment manifest not found: {manifest}")
    return manifest


def open_workspace(
    config: DeployConfig, manifest: Path, *, create: bool = True
) -> DeploymentWorkspace:
    """Open the workspace of *manifest*; its descriptor sits next to it."""
    return DeploymentWorkspace.open(
        config.home_path, descriptor_dir=manifest.parent, create=create
    )
