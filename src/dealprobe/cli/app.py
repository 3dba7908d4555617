"""Main Typer application — entry point for the ``dealprobe`` CLI."""

from __future__ import annotations

import typer

from dealprobe import __version__
from dealprobe.cli.run import run_cmd

app = typer.Typer(
    name="dealprobe",
    help="Drive the FX deal API through its workflow under concurrent load.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("run", help="Run the deal workflow load test.")(run_cmd)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"dealprobe {__version__}")
        raise typer.Exit


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """dealprobe — concurrent workflow load tests for the FX deal API."""
