"""``cpiforge clean`` — remove the current deployment's workspace."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.markup import escape

from cpiforge.cli.state import current_manifest, open_workspace
from cpiforge.config import DeployConfig
from cpiforge.core.errors import DeployError, WorkspaceNotFoundError

console = Console()
err_console = Console(stderr=True)


def clean_cmd() -> None:
    """Delete every compiled package, rendered template and index."""
    config = DeployConfig()
    try:
        workspace = open_workspace(config, current_manifest(config), create=False)
        workspace.clean()
    except WorkspaceNotFoundError:
        console.print("[dim]Nothing to clean.[/dim]")
        return
    except (DeployError, OSError) as exc:
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}", soft_wrap=True)
        raise typer.Exit(code=1)

    console.print(f"[bold green]Removed workspace {workspace.uuid}[/bold green]")
