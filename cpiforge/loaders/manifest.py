"""Deployment manifest loader.

Recognized keys::

    name: my-deployment
    networks:
    - name: default
      ip: 10.0.0.5
      netmask: 255.255.255.0
      gateway: 10.0.0.1
      dns: [8.8.8.8]
    cloud_provider:
      network: default          # optional binding for every job
      properties: {...}         # overrides applied to every job
      jobs:
        cpi:
          network: default      # optional per-job binding
          properties: {...}     # per-job overrides, highest precedence

Everything else in the manifest is ignored here.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from cpiforge.core.errors import ManifestLoadError
from cpiforge.core.property_resolver import deep_merge
from cpiforge.loaders.yaml_file import load_yaml_mapping

_NETWORK_FIELDS = ("ip", "netmask", "gateway", "dns")


class DeploymentManifest:
    """Per-job property and network views over a manifest document."""

    def __init__(self, document: dict[str, Any], path: Path | None = None) -> None:
        self.path = path
        self.name = str(document.get("name") or "")
        cloud_provider = document.get("cloud_provider") or {}
        if not isinstance(cloud_provider, dict):
            raise ManifestLoadError("'cloud_provider' must be a mapping")

        self._properties: dict[str, Any] = cloud_provider.get("properties") or {}
        self._jobs: dict[str, dict[str, Any]] = cloud_provider.get("jobs") or {}
        self._default_network: str | None = cloud_provider.get("network")
        self._networks: dict[str, dict[str, Any]] = {}
        for network in document.get("networks") or []:
            if not isinstance(network, dict) or not network.get("name"):
                raise ManifestLoadError("every network needs a 'name'")
            self._networks[str(network["name"])] = network

    @classmethod
    def load(cls, path: Path) -> DeploymentManifest:
        """Read and parse a manifest file."""
        return cls(load_yaml_mapping(path, ManifestLoadError), path=Path(path))

    def property_overrides_for(self, job_name: str) -> dict[str, Any]:
        job_section = self._jobs.get(job_name) or {}
        return deep_merge(self._properties, job_section.get("properties") or {})

    def network_values_for(self, job_name: str) -> dict[str, Any]:
        job_section = self._jobs.get(job_name) or {}
        bound = job_section.get("network") or self._default_network
        if not bound:
            return {}
        network = self._networks.get(str(bound))
        if network is None:
            raise ManifestLoadError(
                f"Job '{job_name}' is bound to unknown network '{bound}'"
            )
        return {
            field: network[field]
            for field in _NETWORK_FIELDS
            if network.get(field) is not None
        }
