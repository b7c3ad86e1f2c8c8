"""cpiforge CLI — Typer-based command-line interface.

Provides the ``cpiforge`` command with subcommands for selecting a
deployment, deploying a CPI release, inspecting the workspace and cleaning
it up.

All output uses Rich for formatted terminal display.
"""
