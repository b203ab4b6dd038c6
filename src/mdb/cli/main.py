"""
Main CLI application using Typer.

This module provides the operator command-line interface for MDB: feeding
pipeline events to the dispatcher by hand, inspecting file lineage and
creating the schema of a development database.
"""

from __future__ import annotations

import json
import sys
from typing import Any

import typer

from ..infra import db as db_module
from ..infra.exceptions import NotFoundError
from ..infra.logging import configure_logging
from ..infra.uow import session
from ..usecases import descendant_units as _uc_descendant_units
from ..usecases.dispatcher import OperationDispatcher

app = typer.Typer(help="MDB operator CLI")


def _build_dispatcher() -> OperationDispatcher:
    return OperationDispatcher()


def _read_payload(source: str) -> dict[str, Any]:
    if source == "-":
        raw = sys.stdin.read()
    else:
        with open(source, encoding="utf-8") as fh:
            raw = fh.read()
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("payload must be a JSON object")
    return data


@app.command("process")
def process_operation(
    event_type: str = typer.Argument(..., help="Operation type, e.g. capture_stop or send"),
    payload: str = typer.Argument(..., help="Path to a JSON payload file, or - for stdin"),
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
):
    """
    Process one studio pipeline operation in a single transaction.
    """
    try:
        data = _read_payload(payload)
    except (OSError, ValueError) as exc:
        typer.echo(f"Error: cannot read payload: {exc}", err=True)
        raise typer.Exit(2)

    result = _build_dispatcher().process(event_type, data)

    if not result.ok:
        if json_output:
            typer.echo(json.dumps({"status": "error", "error": str(result.error)}, indent=2))
        else:
            typer.echo(f"Error: {result.error}", err=True)
        raise typer.Exit(1)

    if json_output:
        typer.echo(
            json.dumps(
                {
                    "status": "ok",
                    "operation_uid": result.operation_uid,
                    "events": [ev.to_dict() for ev in result.events],
                },
                indent=2,
            )
        )
    else:
        typer.echo(f"Operation {result.operation_uid or '-'} processed, {len(result.events)} event(s)")
        for ev in result.events:
            typer.echo(f"  {ev.type:<24} {ev.entity.uid}")


@app.command("descendants")
def descendants(
    sha1: str = typer.Argument(..., help="SHA1 of the file to start from"),
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
):
    """
    List content units of a file and of all files derived from it.
    """
    try:
        with session() as db:
            rows = _uc_descendant_units.list_descendant_units(db, sha1=sha1)
    except NotFoundError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1)

    if json_output:
        typer.echo(json.dumps({"status": "ok", "total": len(rows), "content_units": rows}, indent=2))
        raise typer.Exit(0)

    if not rows:
        typer.echo("No content units found")
        raise typer.Exit(0)
    for r in rows:
        typer.echo(f"{r['uid']}  {r['type']:<24} published={r['published']}")


@app.command("init-db")
def init_db():
    """
    Create all tables on the configured database (development only).
    """
    db_module.create_schema()
    typer.echo("Schema created")


@app.callback()
def main(
    log_level: str = typer.Option(None, "--log-level", help="Override LOG_LEVEL"),
):
    """MDB - studio media pipeline archive."""
    configure_logging(log_level)


def cli():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    cli()
