"""
CLI utility helpers: settings resolution, store construction, output.
"""

from __future__ import annotations

import json
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any

import typer
from rich.console import Console

from railyard.core.errors import RailyardError
from railyard.core.settings import RailyardSettings, get_settings
from railyard.core.store import RecordStore

console = Console()
err_console = Console(stderr=True)


# ── Settings / store helpers ─────────────────────────────────────────────


def resolve_settings(data_dir: Path | None = None, **overrides: Any) -> RailyardSettings:
    """Environment settings with any explicit CLI options applied on top."""
    updates = {k: v for k, v in overrides.items() if v is not None}
    if data_dir is not None:
        updates["data_dir"] = data_dir
    settings = get_settings()
    return settings.model_copy(update=updates) if updates else settings


def make_store(settings: RailyardSettings) -> RecordStore:
    return RecordStore(settings.data_dir, settings.table_extension)


def fail(error: RailyardError) -> None:
    """Print a railyard error and exit non-zero."""
    err_console.print(f"[bold red]Error[/bold red] ({error.category.value}): {error.message}")
    raise typer.Exit(code=1)


# ── Output helpers ───────────────────────────────────────────────────────


def _to_dict(obj: Any) -> dict[str, Any]:
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    if isinstance(obj, dict):
        return obj
    return {"value": str(obj)}


def output_json(items: list) -> None:
    """Print dataclass records as a JSON array, for scripts wrapping the CLI."""
    console.print_json(json.dumps([_to_dict(i) for i in items], default=str))
