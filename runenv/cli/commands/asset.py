"""``runenv asset``: fetch and verify a single asset file."""

from __future__ import annotations

import typer
from pydantic import ValidationError
from rich.console import Console

from runenv.config import RunEnvConfig
from runenv.core.injector import Injector
from runenv.errors import RunEnvError

console = Console()


def asset_cmd(
    url: str = typer.Argument(..., help="Source address of the asset."),
    checksum: str = typer.Option(..., "--hash", help="Expected MD5, SHA-1 or SHA-256 hex digest."),
    name: str = typer.Option("", "--name", "-n", help="Cache path relative to the assets directory."),
    archived: bool = typer.Option(False, "--zip", help="Fetch URL.zip and extract the asset from it."),
) -> None:
    """Ensure an asset is present in the asset cache."""
    injector = Injector(RunEnvConfig())
    try:
        path = injector.load_asset(url, checksum, name=name, is_archived=archived)
    except ValidationError as exc:
        console.print(f"[red]Invalid asset declaration:[/red] {exc.errors()[0]['msg']}")
        raise typer.Exit(code=2) from exc
    except RunEnvError as exc:
        console.print(f"[red]Asset fetch failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    console.print(str(path), soft_wrap=True)
