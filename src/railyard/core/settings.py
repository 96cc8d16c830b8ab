"""Runtime settings for railyard.

Every knob the engine needs (where tables live, how long a simulated minute
lasts, how likely a derailment is) comes from ``RailyardSettings``.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.

    - **Pydantic validation:** type-checked at startup
    - **Environment-driven:** ``RAILYARD_*`` variables and a ``.env`` file
    - **Sensible defaults:** the values the bot has always run with

Examples:
    >>> settings = RailyardSettings(derail_probability=0.0, minute_seconds=0)
    >>> settings.table_extension
    'csv'

Tags:
    settings, configuration, pydantic, environment, railyard
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RailyardSettings(BaseSettings):
    """Settings shared by the orchestrator, the command handlers and the CLI.

    Fields
    ──────
    data_dir              : Directory holding one file per table
    table_extension       : File extension of table files
    outbox_path           : File the chat transport tails for outbound lines
    tick_interval_seconds : Orchestrator wake-up interval
    minute_seconds        : Wall-clock length of one simulated minute
    max_delay_minutes     : Upper bound of the random per-hop delay
    dwell_minutes         : Time a service waits at each station
    derail_probability    : Chance per hop that a service derails
    log_level             : Structlog log level
    log_format            : ``console`` or ``json``
    """

    model_config = SettingsConfigDict(
        env_prefix="RAILYARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Storage ──────────────────────────────────────────────────
    data_dir: Path = Field(default=Path("data"), description="Directory holding table files")
    table_extension: str = "csv"

    # ── Transport ────────────────────────────────────────────────
    outbox_path: Path = Path("out.txt")

    # ── Scheduling ───────────────────────────────────────────────
    tick_interval_seconds: float = Field(default=60.0, gt=0)
    minute_seconds: float = Field(default=60.0, ge=0)
    max_delay_minutes: int = Field(default=8, ge=0)
    dwell_minutes: int = Field(default=5, ge=0)
    derail_probability: float = 0.05

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"

    @field_validator("derail_probability")
    @classmethod
    def _check_probability(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            raise ValueError("derail_probability must be between 0 and 1")
        return value

    @field_validator("table_extension")
    @classmethod
    def _strip_dot(cls, value: str) -> str:
        return value.lstrip(".") or "csv"


@lru_cache(maxsize=1)
def get_settings() -> RailyardSettings:
    """Return the process-wide settings, loaded once from the environment."""
    return RailyardSettings()
