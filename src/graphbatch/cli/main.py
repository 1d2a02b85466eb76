import json
import logging
from importlib.metadata import version as package_version
from typing import Annotated, Any

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.json import JSON
from rich.panel import Panel

from graphbatch.cli.callbacks import token_callback
from graphbatch.core import Batcher
from graphbatch.deferred import Deferred
from graphbatch.exceptions import GraphBatchError
from graphbatch.request import Param
from graphbatch.utils.logging import setup_logging

app = typer.Typer(no_args_is_help=True)

TokenOption = Annotated[
    str | None,
    typer.Option(
        "-t",
        "--token",
        help="Access token, defaults to GRAPHBATCH_ACCESS_TOKEN",
        callback=token_callback,
    ),
]
ApiVersionOption = Annotated[
    str | None, typer.Option("--api-version", help="Graph API version, e.g. v2.0")
]
VerboseOption = Annotated[bool, typer.Option("-v", "--verbose", help="Log batch activity")]


@app.callback()
def main(verbose: VerboseOption = False):
    """Send Graph API calls in as few batch requests as possible."""
    load_dotenv()
    setup_logging(level=logging.DEBUG if verbose else logging.WARNING)


def print_results(results: dict[str, Deferred[Any]]) -> bool:
    """Print each result in a panel; return ``False`` if any of them failed."""
    console = Console()
    succeeded = True
    for title, deferred in results.items():
        try:
            value = deferred.get()
        except GraphBatchError as error:
            succeeded = False
            console.print(
                Panel(f"[red]{type(error).__name__}[/red]: {error}", title=title, expand=False)
            )
            continue
        console.print(Panel(JSON(json.dumps(value)), title=title, expand=False))
    return succeeded


@app.command()
def graph(
    paths: Annotated[list[str], typer.Argument(help="Object or connection paths, e.g. me or me/friends")],
    token: TokenOption = None,
    fields: Annotated[
        str | None, typer.Option("-f", "--fields", help="Comma-separated fields to fetch")
    ] = None,
    api_version: ApiVersionOption = None,
):
    """Fetch one or more graph objects in a single batch."""
    batcher = Batcher(access_token=token, api_version=api_version)
    params = [Param(name="fields", value=fields)] if fields else []
    results: dict[str, Deferred[Any]] = {path: batcher.graph(path, None, *params) for path in paths}
    batcher.execute()
    if not print_results(results):
        raise typer.Exit(1)


@app.command()
def query(
    queries: Annotated[list[str], typer.Argument(help="FQL queries, sent as one multiquery")],
    token: TokenOption = None,
    api_version: ApiVersionOption = None,
):
    """Run one or more FQL queries in a single multiquery call."""
    batcher = Batcher(access_token=token, api_version=api_version)
    results: dict[str, Deferred[Any]] = {fql: batcher.query(fql) for fql in queries}
    batcher.execute()
    if not print_results(results):
        raise typer.Exit(1)


@app.command()
def version():
    """Show the installed version."""
    typer.echo(package_version("graphbatch"))
    raise typer.Exit()
