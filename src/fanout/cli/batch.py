"""
CLI: ``fanout fetch`` / ``fanout load`` — run a fan-out batch from the shell.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer

from fanout.cli.utils import build_policy, open_source, output_outcome, report_error
from fanout.core.errors import FanoutError
from fanout.core.settings import get_settings
from fanout.execution.orchestrator import fetch_all_sync, load_all


def fetch(
    keys: list[str] = typer.Argument(..., help="Keys to fetch (duplicates are fetched twice)"),
    source: Path | None = typer.Option(None, "--source", "-s", help="JSON record file"),
    database_url: str | None = typer.Option(None, "--database-url", help="SQLAlchemy database URL"),
    table: str | None = typer.Option(None, "--table", help="Table to read from"),
    key_column: str = typer.Option("id", "--key-column", "-k", help="Key field / column"),
    max_concurrency: int | None = typer.Option(None, "--max-concurrency", "-c"),
    timeout: float | None = typer.Option(None, "--timeout", "-t", help="Per-item timeout (s)"),
    fail_fast: bool | None = typer.Option(None, "--fail-fast/--best-effort"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Fetch one record per KEY from a source."""
    try:
        settings = get_settings()
        policy = build_policy(settings, max_concurrency=max_concurrency, timeout=timeout, fail_fast=fail_fast)
        src = open_source(settings, source=source, database_url=database_url, table=table, key_column=key_column)
        outcome = fetch_all_sync(keys, src.fetch, policy)
    except FanoutError as exc:
        raise report_error(exc) from exc
    output_outcome(outcome, as_json=json_out)


def load(
    source: Path | None = typer.Option(None, "--source", "-s", help="JSON record file"),
    database_url: str | None = typer.Option(None, "--database-url", help="SQLAlchemy database URL"),
    table: str | None = typer.Option(None, "--table", help="Table to read from"),
    key_column: str = typer.Option("id", "--key-column", "-k", help="Key field / column"),
    max_concurrency: int | None = typer.Option(None, "--max-concurrency", "-c"),
    timeout: float | None = typer.Option(None, "--timeout", "-t", help="Per-item timeout (s)"),
    fail_fast: bool | None = typer.Option(None, "--fail-fast/--best-effort"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Fetch every record the source lists."""
    try:
        settings = get_settings()
        policy = build_policy(settings, max_concurrency=max_concurrency, timeout=timeout, fail_fast=fail_fast)
        src = open_source(settings, source=source, database_url=database_url, table=table, key_column=key_column)
        outcome = asyncio.run(load_all(src, policy))
    except FanoutError as exc:
        raise report_error(exc) from exc
    output_outcome(outcome, as_json=json_out)
