"""
CLI: ``railyard serve``, run the service orchestrator.
"""

from __future__ import annotations

import asyncio
import contextlib
import signal
from pathlib import Path

import typer

from railyard.cli.utils import console, fail, make_store, resolve_settings
from railyard.core.errors import RailyardError
from railyard.core.logging import configure_logging
from railyard.core.settings import RailyardSettings
from railyard.scheduling import Orchestrator, OutboxNotifier, ServiceTiming

app = typer.Typer(no_args_is_help=True)


async def _serve(settings: RailyardSettings, drain: bool) -> None:
    orchestrator = Orchestrator(
        make_store(settings),
        OutboxNotifier(settings.outbox_path),
        ServiceTiming.from_settings(settings),
        tick_interval=settings.tick_interval_seconds,
    )

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, orchestrator.stop)

    await orchestrator.run()

    if drain and orchestrator.in_flight:
        console.print(f"Waiting for {len(orchestrator.in_flight)} service(s) to finish...")
        await orchestrator.wait_in_flight()


@app.command("start")
def start(
    data_dir: Path | None = typer.Option(None, "--data-dir", "-d", help="Table directory"),
    outbox: Path | None = typer.Option(None, "--outbox", help="Outbound message file"),
    tick_interval: float | None = typer.Option(None, "--tick-interval", help="Seconds between ticks"),
    drain: bool = typer.Option(True, "--drain/--no-drain", help="Wait for running services on stop"),
    log_level: str | None = typer.Option(None, "--log-level"),
) -> None:
    """Start the orchestrator and fire schedules until interrupted."""
    settings = resolve_settings(
        data_dir,
        outbox_path=outbox,
        tick_interval_seconds=tick_interval,
        log_level=log_level,
    )
    configure_logging(level=settings.log_level, format=settings.log_format)

    console.print(
        f"[bold green]Starting railyard[/bold green] (tables in {settings.data_dir}, "
        f"outbox {settings.outbox_path})"
    )
    try:
        asyncio.run(_serve(settings, drain))
    except RailyardError as e:
        fail(e)
