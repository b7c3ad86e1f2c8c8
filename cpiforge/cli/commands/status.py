"""``cpiforge status`` — show the current deployment's workspace and caches."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from cpiforge.cli.state import current_manifest, open_workspace
from cpiforge.config import DeployConfig
from cpiforge.core.errors import DeployError, WorkspaceNotFoundError

console = Console()
err_console = Console(stderr=True)


def status_cmd() -> None:
    """Show the workspace UUID and cached packages and templates."""
    config = DeployConfig()
    try:
        manifest = current_manifest(config)
        workspace = open_workspace(config, manifest, create=False)
    except WorkspaceNotFoundError:
        console.print(f"[bold]Deployment:[/bold] {escape(str(manifest))}", soft_wrap=True)
        console.print("[dim]No workspace yet. Run 'cpiforge deploy' to create one.[/dim]")
        return
    except DeployError as exc:
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}", soft_wrap=True)
        raise typer.Exit(code=1)

    console.print(f"[bold]Deployment:[/bold] {escape(str(manifest))}", soft_wrap=True)
    console.print(f"[bold]Workspace:[/bold]  {workspace.uuid}", soft_wrap=True)

    table = Table(title="Cached artifacts")
    table.add_column("Kind", style="cyan")
    table.add_column("Name")
    table.add_column("Fingerprint", style="dim")
    table.add_column("Blob", style="green")

    for kind, index in (
        ("package", workspace.compiled_packages),
        ("job", workspace.rendered_templates),
    ):
        for entry in index.entries():
            table.add_row(kind, entry.key.name, entry.key.fingerprint[:12], entry.value.blob_id)

    if table.row_count == 0:
        console.print("[dim]Nothing compiled or rendered yet.[/dim]")
        return
    console.print(table)
