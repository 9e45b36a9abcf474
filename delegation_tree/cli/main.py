"""Delegation tree CLI interface."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any, Awaitable, Callable, Dict, List, NoReturn, Optional, Union

import click
from rich.console import Console
from rich.table import Table

from delegation_tree import __version__
from delegation_tree.core.result import Err, Result, fold
from delegation_tree.core.settings import get_settings
from delegation_tree.hierarchy import (
    Address,
    Delegation,
    DelegationQueryEngine,
    DelegationQueryService,
    DelegationWithVotes,
    NodeHandle,
    TraversalBounds,
    TreeSnapshot,
)
from delegation_tree.sources.http import HttpHierarchySource, create_http_source
from delegation_tree.sources.memory import InMemoryHierarchy

console = Console(stderr=False)

EXIT_ERROR = 1
EXIT_NOT_FOUND = 2


def setup_logging(verbose: bool = False) -> None:
    """Configure root logging from settings, or DEBUG when verbose."""
    settings = get_settings()
    level = "DEBUG" if verbose else settings.effective_log_level()
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
        force=True,
    )


Source = Union[InMemoryHierarchy, HttpHierarchySource]


def _open_source(options: Dict[str, Any]) -> Source:
    settings = get_settings()
    if options.get("file"):
        return InMemoryHierarchy.from_json_file(options["file"])

    url = options.get("url") or settings.authority_url
    if not url:
        raise click.UsageError(
            "No hierarchy source: pass --file or --url, or set DELEGATION_TREE_AUTHORITY_URL"
        )
    return create_http_source(
        url, timeout=settings.http_timeout, max_retries=settings.http_max_retries
    )


def _run_query(
    options: Dict[str, Any],
    query: Callable[[DelegationQueryService], Awaitable[Result[Any]]],
) -> Any:
    """Open the configured source, run one query and unwrap its result."""

    async def _run() -> Result[Any]:
        source = _open_source(options)
        try:
            engine = DelegationQueryEngine(
                source, source, source, TraversalBounds.from_settings(get_settings())
            )
            return await query(DelegationQueryService(engine))
        finally:
            if isinstance(source, HttpHierarchySource):
                await source.aclose()

    try:
        result = asyncio.run(_run())
    except KeyboardInterrupt:
        console.print("[yellow]Query cancelled.[/yellow]")
        sys.exit(130)

    return fold(result, on_ok=lambda value: value, on_err=_exit_with_error)


def _exit_with_error(err_result: Err[Any]) -> NoReturn:
    console.print(f"[red]Error ({err_result.code}): {err_result.error}[/red]")
    sys.exit(EXIT_NOT_FOUND if err_result.code == "NOT_FOUND" else EXIT_ERROR)


def _delegation_table(title: str, rows: List[Union[Delegation, DelegationWithVotes]]) -> Table:
    table = Table(title=title)
    table.add_column("Node", style="cyan")
    table.add_column("Delegator", style="green")
    table.add_column("Delegatee", style="green")
    if rows and isinstance(rows[0], DelegationWithVotes):
        table.add_column("Votes", justify="right")

    for row in rows:
        cells = [row.node.id, row.delegator.value, row.delegatee.value]
        if isinstance(row, DelegationWithVotes):
            cells.append(str(row.votes))
        table.add_row(*cells)
    return table


def _print_snapshot(snapshot: TreeSnapshot, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps(snapshot.to_dict(), indent=2))
        return
    for depth, level in enumerate(snapshot.levels):
        console.print(_delegation_table(f"Level {depth}", list(level)))
    console.print(
        f"[dim]{len(snapshot.members())} nodes across {snapshot.depth} levels, "
        f"{snapshot.total_votes} votes[/dim]"
    )


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--file",
    "-f",
    "file",
    type=click.Path(exists=True, dir_okay=False),
    help="JSON hierarchy file to query instead of an authority gateway",
)
@click.option("--url", "-u", help="Authority gateway base URL")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, file: Optional[str], url: Optional[str], verbose: bool) -> None:
    """Query a bounded delegation hierarchy"""
    setup_logging(verbose)
    ctx.obj = {"file": file, "url": url}


@cli.command()
@click.argument("node")
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
@click.pass_obj
def root(options: Dict[str, Any], node: str, as_json: bool) -> None:
    """Show the root of the tree containing NODE"""
    delegation = _run_query(options, lambda service: service.root(NodeHandle(node)))
    if as_json:
        click.echo(json.dumps(delegation.to_dict(), indent=2))
    else:
        console.print(_delegation_table("Root", [delegation]))


@cli.command()
@click.argument("node")
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
@click.pass_obj
def ancestors(options: Dict[str, Any], node: str, as_json: bool) -> None:
    """List NODE and its ancestors up to the root"""
    chain = _run_query(options, lambda service: service.ancestors(NodeHandle(node)))
    if as_json:
        click.echo(json.dumps([delegation.to_dict() for delegation in chain], indent=2))
    else:
        console.print(_delegation_table("Ancestors", chain))


@cli.command()
@click.argument("node")
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
@click.pass_obj
def children(options: Dict[str, Any], node: str, as_json: bool) -> None:
    """List the direct children of NODE"""
    delegations = _run_query(options, lambda service: service.children(NodeHandle(node)))
    if as_json:
        click.echo(json.dumps([delegation.to_dict() for delegation in delegations], indent=2))
    elif not delegations:
        console.print("[yellow]No children.[/yellow]")
    else:
        console.print(_delegation_table("Children", delegations))


@cli.command()
@click.argument("node")
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
@click.pass_obj
def snapshot(options: Dict[str, Any], node: str, as_json: bool) -> None:
    """Snapshot the whole tree containing NODE with vote weights"""
    tree = _run_query(options, lambda service: service.snapshot(NodeHandle(node)))
    _print_snapshot(tree, as_json)


@cli.command("snapshot-for")
@click.argument("delegator")
@click.argument("delegatee")
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
@click.pass_obj
def snapshot_for(options: Dict[str, Any], delegator: str, delegatee: str, as_json: bool) -> None:
    """Snapshot the tree containing the DELEGATOR -> DELEGATEE delegation"""
    tree = _run_query(
        options,
        lambda service: service.snapshot_for_pair(Address(delegator), Address(delegatee)),
    )
    _print_snapshot(tree, as_json)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
