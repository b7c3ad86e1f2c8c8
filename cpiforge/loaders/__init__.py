"""Collaborator loaders — release directories and deployment manifests."""

from cpiforge.loaders.manifest import DeploymentManifest
from cpiforge.loaders.release import DirectoryRelease

__all__ = ["DeploymentManifest", "DirectoryRelease"]
