"""``cpiforge deploy RELEASE_DIR STEMCELL`` — run the deploy pipeline.

Validates the CPI release, compiles its packages and renders its job
templates into the workspace of the current deployment.  Exits 0 on
success and 1 on any pipeline failure.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from cpiforge.cli.state import current_manifest, open_workspace
from cpiforge.config import DeployConfig
from cpiforge.core.deployer import Deployer
from cpiforge.core.errors import DeployError, ReleaseInvalidError
from cpiforge.executors import ScriptCompileExecutor
from cpiforge.loaders.manifest import DeploymentManifest
from cpiforge.loaders.release import DirectoryRelease

console = Console()
err_console = Console(stderr=True)

_EVENT_LABELS: dict[str, str] = {
    "started": "Started",
    "done": "Done",
    "cached": "Skipped (already built)",
    "failed": "Failed",
}


def report_progress(stage: str, item: str, event: str) -> None:
    """Print one progress line, e.g. ``Started compiling packages > golang``."""
    label = _EVENT_LABELS.get(event, event)
    console.print(f"{label} {stage} > {item}", markup=False, highlight=False, soft_wrap=True)


def deploy_cmd(
    release_dir: Path = typer.Argument(
        ...,
        help="Path to the extracted CPI release directory.",
    ),
    stemcell: Path = typer.Argument(
        ...,
        help="Path to the stemcell tarball.",
    ),
    workers: int = typer.Option(
        None,
        "--workers",
        "-w",
        min=1,
        help="Maximum concurrent package compiles (default from CPIFORGE_MAX_COMPILE_WORKERS).",
    ),
) -> None:
    """Compile the release's packages and render its job templates."""
    config = DeployConfig()
    if workers is not None:
        config = config.model_copy(update={"max_compile_workers": workers})

    if not stemcell.is_file():
        err_console.print(f"[bold red]Stemcell not found:[/bold red] {escape(str(stemcell))}", soft_wrap=True)
        raise typer.Exit(code=1)

    try:
        manifest_path = current_manifest(config)
        manifest = DeploymentManifest.load(manifest_path)
        release = DirectoryRelease(release_dir)
        workspace = open_workspace(config, manifest_path)
        executor = ScriptCompileExecutor(
            workspace.blob_store,
            shell=config.compile_shell,
            timeout_seconds=config.compile_timeout_seconds,
        )
        deployer = Deployer(
            workspace,
            executor,
            config.pipeline_config(),
            reporter=report_progress,
        )
        result = deployer.deploy(release, manifest)
    except ReleaseInvalidError as exc:
        err_console.print(f"[bold red]{escape(str(exc))}[/bold red]", soft_wrap=True)
        raise typer.Exit(code=1)
    except DeployError as exc:
        err_console.print(f"[bold red]Deploy failed:[/bold red] {escape(str(exc))}", soft_wrap=True)
        raise typer.Exit(code=1)

    console.print()
    console.print(
        Panel(
            "\n".join([
                "[bold green]Deploy complete![/bold green]",
                "",
                f"[bold]Release:[/bold]    {escape(result.release_name)}",
                f"[bold]Workspace:[/bold]  {result.workspace_uuid}",
                f"[bold]Packages:[/bold]   {len(result.newly_compiled)} compiled, "
                f"{len(result.cached_packages)} cached",
                f"[bold]Jobs:[/bold]       {len(result.rendered_templates)} rendered",
            ]),
            title="[bold]cpiforge deploy[/bold]",
            border_style="green",
            padding=(1, 2),
        )
    )
