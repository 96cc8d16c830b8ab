"""
CLI: ``railyard train``, the commands the chat bot forwards.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer

from railyard.cli.utils import console, fail, make_store, output_json, resolve_settings
from railyard.core.errors import RailyardError
from railyard.scheduling import RegistrationDesk, ScheduleCatalog, score, tally

app = typer.Typer(no_args_is_help=True)


@app.command("board")
def board(
    actor: str = typer.Argument(..., help="Nick of the person boarding"),
    number: str = typer.Argument(..., help="Train number"),
    station: str = typer.Argument(..., help="Channel the command came from"),
    data_dir: Path | None = typer.Option(None, "--data-dir", "-d"),
) -> None:
    """Register for a train at a station."""
    desk = RegistrationDesk(make_store(resolve_settings(data_dir)))
    try:
        console.print(asyncio.run(desk.register(actor, number, station)))
    except RailyardError as e:
        fail(e)


@app.command("deboard")
def deboard(
    actor: str = typer.Argument(..., help="Nick leaving the platform"),
    data_dir: Path | None = typer.Option(None, "--data-dir", "-d"),
) -> None:
    """Withdraw a pending registration."""
    desk = RegistrationDesk(make_store(resolve_settings(data_dir)))
    try:
        console.print(asyncio.run(desk.deboard(actor)))
    except RailyardError as e:
        fail(e)


@app.command("points")
def points(
    data_dir: Path | None = typer.Option(None, "--data-dir", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show the leaderboard."""
    store = make_store(resolve_settings(data_dir))
    if not json_out:
        console.print(asyncio.run(score(store)))
        return
    try:
        output_json(asyncio.run(tally(store)))
    except RailyardError as e:
        fail(e)


@app.command("schedules")
def schedules(
    data_dir: Path | None = typer.Option(None, "--data-dir", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show the timetable."""
    catalog = ScheduleCatalog(make_store(resolve_settings(data_dir)))
    try:
        if json_out:
            output_json(asyncio.run(catalog.load()))
        else:
            console.print(asyncio.run(catalog.timetable()))
    except RailyardError as e:
        fail(e)
