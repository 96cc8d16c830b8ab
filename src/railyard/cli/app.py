"""
Root Typer application for the railyard CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from railyard import __version__

app = Typer(
    name="railyard",
    help="railyard: scheduled train services for the chat bot.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"railyard {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """railyard CLI: run the scheduler and handle train commands."""


from railyard.cli.serve import app as serve_app  # noqa: E402
from railyard.cli.train import app as train_app  # noqa: E402

app.add_typer(serve_app, name="serve", help="Run the service orchestrator.")
app.add_typer(train_app, name="train", help="Boarding, timetable and points.")
