"""
CLI utility helpers — source resolution and output formatting.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from fanout.core.errors import FanoutError
from fanout.core.settings import FanoutSettings
from fanout.execution.outcomes import Aborted, AggregateOutcome
from fanout.execution.policy import Policy
from fanout.sources.base import RecordSource
from fanout.sources.memory import InMemorySource
from fanout.sources.sql import SqlTableSource

console = Console()
err_console = Console(stderr=True)

EXIT_ABORTED = 1
EXIT_CONFIG = 2


def fail(message: str, code: int = EXIT_CONFIG) -> typer.Exit:
    """Print an error to stderr and build the matching ``typer.Exit``."""
    err_console.print(f"[bold red]Error:[/bold red] {message}")
    return typer.Exit(code=code)


# ── Source / policy resolution ───────────────────────────────────────────


def open_source(
    settings: FanoutSettings,
    *,
    source: Path | None,
    database_url: str | None,
    table: str | None,
    key_column: str,
) -> RecordSource:
    """Build the record source selected on the command line."""
    if source is not None:
        return InMemorySource.from_json_file(source, key_field=key_column)

    url = database_url or settings.database_url
    if url:
        if not table:
            raise fail("--table is required with a database source")
        return SqlTableSource(url, table, key_column=key_column)

    raise fail("No record source: pass --source FILE.json or --database-url URL --table NAME")


def build_policy(
    settings: FanoutSettings,
    *,
    max_concurrency: int | None,
    timeout: float | None,
    fail_fast: bool | None,
) -> Policy:
    """Settings-derived policy with command-line overrides applied."""
    return Policy(
        max_concurrency=max_concurrency if max_concurrency is not None else settings.max_concurrency,
        per_item_timeout=timeout if timeout is not None else settings.per_item_timeout_seconds,
        fail_fast=fail_fast if fail_fast is not None else settings.fail_fast,
        cancel_grace=settings.cancel_grace_seconds,
    )


# ── Output helpers ───────────────────────────────────────────────────────


def _cell(value: Any) -> str:
    if isinstance(value, dict | list):
        return json.dumps(value, default=str)
    return str(value)


def output_outcome(outcome: AggregateOutcome, *, as_json: bool = False) -> None:
    """Render a batch outcome; raise ``typer.Exit(1)`` if it was aborted."""
    if isinstance(outcome, Aborted):
        err = outcome.error
        if as_json:
            console.print_json(json.dumps(outcome.to_dict(), default=str))
        err_console.print(f"[bold red]Aborted[/bold red] ({err.category.value}): {err.message}")
        raise typer.Exit(code=EXIT_ABORTED)

    if as_json:
        payload = {
            "values": outcome.values,
            "dropped": [
                {"key": d.key, "reason": d.state.value} for d in outcome.dropped
            ],
        }
        console.print_json(json.dumps(payload, default=str))
        return

    table = Table(title=f"{len(outcome.values)} fetched, {outcome.dropped_count} dropped")
    table.add_column("#", justify="right")
    table.add_column("Value")
    for position, value in enumerate(outcome.values, 1):
        table.add_row(str(position), _cell(value))
    console.print(table)

    for dropped in outcome.dropped:
        err_console.print(f"[yellow]dropped[/yellow] {dropped.key!r}: {dropped.state.value}")


def report_error(exc: FanoutError) -> typer.Exit:
    return fail(exc.message)
