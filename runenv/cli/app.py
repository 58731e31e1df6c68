"""Main Typer application: imports and registers all CLI commands.

Entry point: ``runenv`` (configured via pyproject.toml project.scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from runenv.cli.commands.asset import asset_cmd
from runenv.cli.commands.resolve import fetch_cmd, resolve_cmd
from runenv.config import RunEnvConfig

app = typer.Typer(
    name="runenv",
    help="runenv: resolve, verify, relocate and inject runtime dependencies.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def _configure(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
) -> None:
    level = "DEBUG" if verbose else RunEnvConfig().log_level
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(show_path=False)],
        force=True,
    )


# Register subcommands
app.command(name="resolve", help="Resolve and print a coordinate's closure.")(resolve_cmd)
app.command(name="fetch", help="Download (and relocate) a coordinate's closure.")(fetch_cmd)
app.command(name="asset", help="Fetch and verify an asset file.")(asset_cmd)


@app.command(name="config", help="Show the effective configuration.")
def config_cmd() -> None:
    """Print the effective configuration and repository overrides."""
    console = Console()
    config = RunEnvConfig()

    table = Table(title="runenv configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for key, value in config.model_dump().items():
        table.add_row(key, str(value))
    console.print(table)

    overrides = config.repository_overrides()
    if overrides:
        repos = Table(title="Repository overrides")
        repos.add_column("Name", style="cyan")
        repos.add_column("Address", style="green")
        for key, url in sorted(overrides.items()):
            repos.add_row(key, url)
        console.print(repos)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
