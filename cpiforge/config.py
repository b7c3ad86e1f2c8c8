"""Runtime configuration — env-driven.

Centralized config using pydantic-settings.  Reads from a .env file and
CPIFORGE_* environment variables.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from cpiforge.models.config import PipelineConfig


class DeployConfig(BaseSettings):
    """Deploy configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export CPIFORGE_HOME=/var/lib/cpiforge
        export CPIFORGE_LOG_LEVEL=DEBUG
        export CPIFORGE_MAX_COMPILE_WORKERS=1

    Or via .env file::

        CPIFORGE_CPI_JOB_NAME=cpi
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="CPIFORGE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Runtime
    log_level: str = "INFO"
    debug: bool = False

    # Storage: workspaces live under {home}/{uuid}; CLI state in {home}/config.json
    home: Path = Path("~/.cpiforge")

    # Pipeline
    cpi_job_name: str = "cpi"
    max_compile_workers: int = Field(default=4, ge=1)
    max_render_workers: int = Field(default=4, ge=1)

    # Compile executor
    compile_shell: str = "bash"
    compile_timeout_seconds: float | None = None

    @property
    def home_path(self) -> Path:
        """``home`` with ``~`` expanded."""
        return self.home.expanduser()

    @property
    def cli_state_path(self) -> Path:
        return self.home_path / "config.json"

    def pipeline_config(self) -> PipelineConfig:
        """Project the settings a single deploy needs."""
        return PipelineConfig(
            cpi_job_name=self.cpi_job_name,
            max_compile_workers=self.max_compile_workers,
            max_render_workers=self.max_render_workers,
        )
