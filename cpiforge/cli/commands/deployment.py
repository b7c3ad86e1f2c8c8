"""``cpiforge deployment MANIFEST`` — select the deployment manifest.

Records the manifest as the target of later ``deploy`` calls and opens its
workspace, assigning the workspace UUID on first use.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from cpiforge.cli.state import CliState, open_workspace, save_state
from cpiforge.config import DeployConfig
from cpiforge.core.errors import DeployError
from cpiforge.loaders.manifest import DeploymentManifest

console = Console()
err_console = Console(stderr=True)


def deployment_cmd(
    manifest: Path = typer.Argument(
        ...,
        help="Path to the deployment manifest YAML.",
    ),
) -> None:
    """Set the deployment manifest and initialize its workspace."""
    config = DeployConfig()
    manifest = manifest.expanduser().resolve()

    try:
        parsed = DeploymentManifest.load(manifest)
        workspace = open_workspace(config, manifest)
        save_state(config, CliState(deployment=manifest))
    except DeployError as exc:
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}", soft_wrap=True)
        raise typer.Exit(code=1)

    console.print(
        Panel(
            "\n".join([
                f"[bold green]Deployment set to {escape(str(manifest))}[/bold green]",
                "",
                f"[bold]Name:[/bold]       {escape(parsed.name) or '[dim]unnamed[/dim]'}",
                f"[bold]Workspace:[/bold]  {escape(str(workspace.path))}",
            ]),
            title="[bold]cpiforge[/bold]",
            border_style="green",
            padding=(1, 2),
        )
    )
    # Print the UUID plainly for scripting
    console.print(workspace.uuid, soft_wrap=True, markup=False)
