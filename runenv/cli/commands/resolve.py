"""``runenv resolve`` and ``runenv fetch``: inspect and acquire a closure."""

from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from runenv.config import RunEnvConfig
from runenv.core.closure_graph import ClosureGraph
from runenv.core.injector import Injector
from runenv.core.resolver import Closure, ResolveOptions
from runenv.errors import RunEnvError
from runenv.models.coordinates import DependencyCoordinate
from runenv.models.relocation import rules_from_pairs
from runenv.models.scopes import DependencyScope

console = Console()


def _options(
    scopes: list[DependencyScope] | None,
    transitive: bool,
    include_optional: bool,
    ignore_exception: bool,
    relocate: list[str] | None = None,
) -> ResolveOptions:
    return ResolveOptions(
        scopes=frozenset(scopes or (DependencyScope.RUNTIME, DependencyScope.COMPILE)),
        ignore_optional=not include_optional,
        ignore_exception=ignore_exception,
        transitive=transitive,
        relocation=tuple(rules_from_pairs(relocate or [])),
    )


def _tree(graph: ClosureGraph) -> Tree:
    tree = Tree(f"[bold cyan]{graph.root}[/bold cyan]")
    seen: set[DependencyCoordinate] = {graph.root}

    def _walk(node: DependencyCoordinate, branch: Tree) -> None:
        for child in graph.requires(node):
            if child in seen:
                branch.add(f"[dim]{child} (already listed)[/dim]")
                continue
            seen.add(child)
            _walk(child, branch.add(str(child)))

    _walk(graph.root, tree)
    return tree


def _table(closure: Closure) -> Table:
    table = Table(title=f"Closure of {closure.graph.root}")
    table.add_column("#", justify="right")
    table.add_column("Coordinate", style="cyan")
    table.add_column("Scope", style="green")
    table.add_column("Packaging")
    table.add_column("Repository", style="dim")
    for i, dep in enumerate(closure.dependencies):
        repos = closure.repositories.get(dep.coordinate, [])
        table.add_row(
            str(i),
            str(dep.coordinate),
            dep.scope.value,
            closure.descriptors[dep.coordinate].packaging,
            repos[0].url if repos else "",
        )
    return table


def resolve_cmd(
    coordinate: str = typer.Argument(..., help="Coordinate as group:artifact:version."),
    scope: Optional[list[DependencyScope]] = typer.Option(
        None, "--scope", "-s", help="Scopes to include (repeatable). Default: runtime, compile."
    ),
    transitive: bool = typer.Option(True, "--transitive/--no-transitive", help="Walk child descriptors."),
    include_optional: bool = typer.Option(False, "--include-optional", help="Keep optional children."),
    ignore_exception: bool = typer.Option(False, "--ignore-exception", help="Drop unresolvable branches."),
    repository: str = typer.Option("", "--repository", "-r", help="Repository name or address."),
    tree: bool = typer.Option(False, "--tree", help="Show the requirement tree instead of a table."),
) -> None:
    """Resolve a coordinate's closure and print it."""
    injector = Injector(RunEnvConfig())
    try:
        closure = injector.resolve(
            coordinate,
            repository=repository or None,
            options=_options(scope, transitive, include_optional, ignore_exception),
        )
    except RunEnvError as exc:
        console.print(f"[red]Resolution failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    console.print(_tree(closure.graph) if tree else _table(closure))


def fetch_cmd(
    coordinate: str = typer.Argument(..., help="Coordinate as group:artifact:version."),
    scope: Optional[list[DependencyScope]] = typer.Option(None, "--scope", "-s", help="Scopes to include."),
    transitive: bool = typer.Option(True, "--transitive/--no-transitive"),
    include_optional: bool = typer.Option(False, "--include-optional"),
    ignore_exception: bool = typer.Option(False, "--ignore-exception"),
    repository: str = typer.Option("", "--repository", "-r"),
    relocate: Optional[list[str]] = typer.Option(
        None, "--relocate", help="Repeat in pairs: pattern, then its replacement."
    ),
) -> None:
    """Resolve, download and relocate a closure; print the cached binaries."""
    injector = Injector(RunEnvConfig())
    try:
        options = _options(scope, transitive, include_optional, ignore_exception, relocate)
        paths = injector.acquire(coordinate, repository=repository or None, options=options)
    except RunEnvError as exc:
        console.print(f"[red]Fetch failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    for path in paths:
        console.print(str(path), soft_wrap=True)
