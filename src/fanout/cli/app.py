"""
Root Typer application for the fanout CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from fanout.cli import batch
from fanout.cli.config import app as config_app
from fanout.core.errors import ConfigurationError
from fanout.core.logging import configure_logging

app = Typer(
    name="fanout",
    help="fanout — bounded concurrent fan-out fetch.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from fanout import __version__

        typer.echo(f"fanout {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", "-l", help="Override FANOUT_LOG_LEVEL"),
) -> None:
    """fanout CLI — fetch records by key with bounded concurrency."""
    from fanout.core.settings import get_settings

    try:
        settings = get_settings()
        configure_logging(level=log_level or settings.log_level, json_format=settings.json_logs)
    except (ConfigurationError, ValueError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=2) from exc


# ── Sub-command registration ─────────────────────────────────────────────

app.command("fetch")(batch.fetch)
app.command("load")(batch.load)
app.add_typer(config_app, name="config", help="Configuration inspection.")


if __name__ == "__main__":
    app()
