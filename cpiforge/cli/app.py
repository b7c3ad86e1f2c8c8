"""Main Typer application — imports and registers all CLI commands.

Entry point: ``cpiforge`` (configured via pyproject.toml scripts).

Commands: deployment, deploy, status, clean.
"""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from cpiforge.cli.commands.clean import clean_cmd
from cpiforge.cli.commands.deploy import deploy_cmd
from cpiforge.cli.commands.deployment import deployment_cmd
from cpiforge.cli.commands.status import status_cmd
from cpiforge.config import DeployConfig

app = typer.Typer(
    name="cpiforge",
    help="cpiforge: compile and render CPI releases into a cached deployment workspace.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="deployment", help="Set the deployment manifest.")(deployment_cmd)
app.command(name="deploy", help="Compile packages and render job templates of a CPI release.")(deploy_cmd)
app.command(name="status", help="Show the current workspace and its caches.")(status_cmd)
app.command(name="clean", help="Remove the current deployment's workspace.")(clean_cmd)


@app.callback()
def configure_logging(
    log_level: str = typer.Option(
        None,
        "--log-level",
        help="Logging level (default from CPIFORGE_LOG_LEVEL).",
    ),
) -> None:
    """Install a Rich log handler on stderr."""
    config = DeployConfig()
    level = (log_level or ("DEBUG" if config.debug else config.log_level)).upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
