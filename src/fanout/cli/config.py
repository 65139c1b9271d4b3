"""
CLI: ``fanout config`` — inspect and validate the settings a batch policy comes from.
"""

from __future__ import annotations

import typer
from rich.table import Table

from fanout.cli.utils import console, report_error
from fanout.core.errors import ConfigurationError
from fanout.core.settings import FanoutSettings
from fanout.execution.policy import Policy

app = typer.Typer(no_args_is_help=True)

_FORMATS = ("table", "json", "env")


def _load() -> FanoutSettings:
    from fanout.core.settings import get_settings

    try:
        return get_settings()
    except ConfigurationError as exc:
        raise report_error(exc) from exc


@app.command("show")
def show_config(
    format: str = typer.Option("table", "--format", "-f", help="table, json or env"),
) -> None:
    """Print the effective settings."""
    if format not in _FORMATS:
        raise typer.BadParameter(f"expected one of {', '.join(_FORMATS)}", param_hint="--format")

    values = _load().model_dump()

    match format:
        case "json":
            console.print_json(data=values)
        case "env":
            for name in sorted(values):
                value = values[name]
                console.print(f"FANOUT_{name.upper()}={'' if value is None else value}")
        case _:
            table = Table(title="fanout settings")
            table.add_column("Setting", style="cyan")
            table.add_column("Value")
            for name in sorted(values):
                table.add_row(name, str(values[name]))
            console.print(table)


@app.command("validate")
def validate_config() -> None:
    """Check that the settings yield a usable batch policy."""
    settings = _load()
    try:
        policy = Policy.from_settings(settings)
    except ConfigurationError as exc:
        raise report_error(exc) from exc
    console.print(
        f"[green]OK[/green] {policy.mode}: max_concurrency={policy.max_concurrency}, "
        f"per_item_timeout={policy.per_item_timeout}s"
    )
