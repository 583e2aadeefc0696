# nebulous.py
"""
Nebulous — browse DynamoDB tables from the terminal.

CLI:
  nebulous ui
  nebulous --endpoint http://localhost:8000 ui
  nebulous query-dynamo --table-name users --format json

Credentials/profile come from boto3's standard environment (AWS_PROFILE etc.).

Requirements:
  typer
  rich
  boto3
  PyYAML
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler

from app_state import InputError
from dynamo import REMOTE_ERRORS, SCAN_LIMIT, DynamoClient, scan_items
from input_source import DEFAULT_TICK_RATE
from item_values import ConversionError, Row
from tui import DashboardConfig, TerminalError, run_ui

app = typer.Typer(add_completion=False, no_args_is_help=True, help="Browse DynamoDB tables from the terminal")

FORMATS = ("yaml", "json")

_log_handler: Optional[logging.Handler] = None


@dataclass
class GlobalOptions:
    endpoint: Optional[str] = None
    region: Optional[str] = None


# -------------------------
# Logging
# -------------------------

def setup_logging(log_file: Optional[str], verbose: bool, interactive: bool) -> None:
    """Route log records to a file, stderr, or nowhere (the dashboard owns the screen)."""
    global _log_handler
    level = logging.DEBUG if verbose else logging.WARNING
    root = logging.getLogger()
    if _log_handler is not None:
        root.removeHandler(_log_handler)
        _log_handler.close()

    if log_file:
        handler: logging.Handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    elif interactive:
        handler = logging.NullHandler()
    else:
        handler = RichHandler(console=Console(stderr=True), show_path=False)
    root.addHandler(handler)
    _log_handler = handler
    root.setLevel(level)

    # boto is chatty at DEBUG
    for name in ("botocore", "boto3", "urllib3"):
        logging.getLogger(name).setLevel(max(level, logging.INFO))


# -------------------------
# CLI commands
# -------------------------

@app.callback()
def main(ctx: typer.Context,
         endpoint: Optional[str] = typer.Option(None, envvar="NEBULOUS_ENDPOINT", help="Override the DynamoDB endpoint URL"),
         region: Optional[str] = typer.Option(None, help="AWS region (defaults to the boto3 environment)"),
         log_file: Optional[str] = typer.Option(None, help="Write log output to this file"),
         verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
    ctx.obj = GlobalOptions(endpoint=endpoint, region=region)
    setup_logging(log_file, verbose, interactive=ctx.invoked_subcommand == "ui")


@app.command()
def ui(ctx: typer.Context,
       tick_rate: float = typer.Option(DEFAULT_TICK_RATE, help="Tick interval in seconds"),
       scan_limit: int = typer.Option(SCAN_LIMIT, help="Maximum items scanned per table")):
    """Launch the interactive dashboard."""
    opts: GlobalOptions = ctx.obj
    config = DashboardConfig(endpoint=opts.endpoint, region=opts.region, tick_rate=tick_rate, scan_limit=scan_limit)
    try:
        run_ui(config)
    except (TerminalError, InputError) as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    except REMOTE_ERRORS as e:
        typer.secho(f"Cannot create DynamoDB client: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    except KeyboardInterrupt:
        raise typer.Exit(130)


@app.command("query-dynamo")
def query_dynamo(ctx: typer.Context,
                 table_name: str = typer.Option(..., "--table-name", help="Table to scan"),
                 limit: int = typer.Option(SCAN_LIMIT, help="Maximum items to scan (0 for one full page)"),
                 fmt: str = typer.Option("yaml", "--format", help="Output format: yaml or json"),
                 raw: bool = typer.Option(False, help="Print the unconverted scan response")):
    """Scan a table once and print its items."""
    if fmt not in FORMATS:
        raise typer.BadParameter(f"must be one of {', '.join(FORMATS)}", param_hint="--format")

    opts: GlobalOptions = ctx.obj
    typer.secho(f"Querying dynamo: {table_name}", fg=typer.colors.CYAN, err=True)
    try:
        client = DynamoClient(opts.endpoint, opts.region)
        if raw:
            Console().print(client.scan(table_name, limit or None))
            return
        items = scan_items(client, table_name, limit or None)
        rows = [Row.from_item(i).to_plain() for i in items]
    except REMOTE_ERRORS as e:
        typer.secho(f"Scan failed: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    except ConversionError as e:
        typer.secho(f"Cannot convert item: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    if fmt == "json":
        typer.echo(json.dumps(rows, indent=2))
    else:
        typer.echo(yaml.safe_dump(rows, sort_keys=False, allow_unicode=True), nl=False)
    typer.secho(f"✓ {len(rows)} items", fg=typer.colors.GREEN, err=True)


if __name__ == "__main__":
    app()
