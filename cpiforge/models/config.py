"""Per-deploy pipeline configuration."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class PipelineConfig(BaseModel):
    """Options for a single ``Deployer`` run.

    Built from ``DeployConfig`` by the CLI; tests construct it directly.
    """

    model_config = ConfigDict(frozen=True)

    cpi_job_name: str = "cpi"
    max_compile_workers: int = Field(default=4, ge=1)
    max_render_workers: int = Field(default=4, ge=1)
