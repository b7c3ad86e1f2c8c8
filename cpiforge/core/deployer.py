"""Deploy pipeline — the central coordinator for a cpiforge deploy.

The Deployer wires the ReleaseValidator, PackageCompiler, PropertyResolver
and TemplateRenderer to one DeploymentWorkspace:

1. validate the release (no side effects before this passes);
2. compile packages in dependency order;
3. resolve each job's property tree;
4. render every job.

Any ``DeployError`` aborts the deploy.  Entries recorded before the failure
stay valid and are reused by the next attempt.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict

from cpiforge.collaborators import Manifest, Release
from cpiforge.core.package_compiler import PackageCompiler, ProgressReporter
from cpiforge.core.property_resolver import PropertyResolver
from cpiforge.core.release_validator import ReleaseValidator
from cpiforge.core.template_renderer import TemplateRenderer
from cpiforge.core.workspace import DeploymentWorkspace
from cpiforge.executors import CompileExecutor, ScriptCompileExecutor
from cpiforge.models.config import PipelineConfig

logger = logging.getLogger(__name__)


class DeployResult(BaseModel):
    """What one successful deploy produced."""

    model_config = ConfigDict(frozen=True)

    workspace_uuid: str
    release_name: str
    compiled_packages: dict[str, str]  # package name -> blob id
    newly_compiled: list[str]
    cached_packages: list[str]
    rendered_templates: dict[str, str]  # job name -> blob id


class Deployer:
    """Runs the validate → compile → resolve → render pipeline.

    Parameters
    ----------
    workspace:
        Opened workspace whose caches are consulted and populated.
    executor:
        Compile backend.  Defaults to ``ScriptCompileExecutor``.
    config:
        Pipeline options.  Uses defaults if not provided.
    reporter:
        Optional progress callback shared by compiler and renderer.
    """

    def __init__(
        self,
        workspace: DeploymentWorkspace,
        executor: CompileExecutor | None = None,
        config: PipelineConfig | None = None,
        *,
        reporter: ProgressReporter | None = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self.workspace = workspace

        self.validator = ReleaseValidator(self.config.cpi_job_name)
        self.compiler = PackageCompiler(
            workspace.blob_store,
            workspace.compiled_packages,
            executor or ScriptCompileExecutor(workspace.blob_store),
            max_workers=self.config.max_compile_workers,
            reporter=reporter,
        )
        self.resolver = PropertyResolver()
        self.renderer = TemplateRenderer(
            workspace.blob_store,
            workspace.rendered_templates,
            max_workers=self.config.max_render_workers,
            reporter=reporter,
        )

    def deploy(self, release: Release, manifest: Manifest) -> DeployResult:
        """Run the full pipeline for *release* against *manifest*."""
        logger.info("Deploying release %s into workspace %s", release.name, self.workspace.uuid)
        self.validator.validate(release)

        compile_result = self.compiler.compile_detailed(release.packages())

        jobs = sorted(release.jobs(), key=lambda job: job.name)
        trees = [
            (
                job,
                self.resolver.resolve(
                    job,
                    manifest.property_overrides_for(job.name),
                    manifest.network_values_for(job.name),
                ),
            )
            for job in jobs
        ]
        rendered = self.renderer.render_all(trees)

        logger.info(
            "Deploy of %s complete: %d compiled, %d cached, %d jobs rendered",
            release.name,
            len(compile_result.compiled),
            len(compile_result.cached),
            len(rendered),
        )
        return DeployResult(
            workspace_uuid=self.workspace.uuid,
            release_name=release.name,
            compiled_packages=compile_result.blob_ids,
            newly_compiled=compile_result.compiled,
            cached_packages=compile_result.cached,
            rendered_templates=rendered,
        )
