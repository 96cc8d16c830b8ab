"""Record types persisted by the service scheduler.

Each record owns its row layout. Parsing is lenient: a field that is missing
or fails to parse takes the type default, so a hand-edited row with a typo
degrades quietly instead of taking the whole table down.

Tables::

    train_schedules      number, name, hour, minute, delta, score, route(a:b:c)
    train_registrations  actor, number, station
    train_completions    timestamp, actor, number
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

SCHEDULES_TABLE = "train_schedules"
REGISTRATIONS_TABLE = "train_registrations"
COMPLETIONS_TABLE = "train_completions"

ROUTE_SEPARATOR = ":"
EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def _text(fields: Sequence[str], index: int, default: str = "") -> str:
    try:
        return fields[index]
    except IndexError:
        return default


def _int(fields: Sequence[str], index: int, default: int) -> int:
    try:
        return int(fields[index].strip())
    except (IndexError, ValueError):
        return default


@dataclass(frozen=True)
class Schedule:
    """Time-triggered job definition (``train_schedules``).

    ``hour``/``minute`` are UTC. ``delta`` is the per-hop travel budget in
    simulated minutes and ``score`` the reward credited to every passenger
    who rides to the end of the route. The defaults for a malformed trigger
    (25:61) can never match a clock, so a broken row never fires.

    Stations are stored joined by ``ROUTE_SEPARATOR``, so a station name
    containing ``:`` comes back split in two and an empty station name
    comes back as no station at all. Catalog rows are written by hand, not
    by railyard, and such names are not supported.
    """

    number: int = 0
    name: str = ""
    hour: int = 25
    minute: int = 61
    delta: int = 60
    score: int = 10
    route: tuple[str, ...] = ()

    @classmethod
    def from_fields(cls, fields: Sequence[str]) -> Schedule:
        route_text = _text(fields, 6)
        return cls(
            number=_int(fields, 0, 0),
            name=_text(fields, 1),
            hour=_int(fields, 2, 25),
            minute=_int(fields, 3, 61),
            delta=_int(fields, 4, 60),
            score=_int(fields, 5, 10),
            route=tuple(route_text.split(ROUTE_SEPARATOR)) if route_text else (),
        )

    def to_fields(self) -> list[str]:
        return [
            str(self.number),
            self.name,
            str(self.hour),
            str(self.minute),
            str(self.delta),
            str(self.score),
            ROUTE_SEPARATOR.join(self.route),
        ]

    def fires_at(self, moment: datetime) -> bool:
        """True when ``moment`` falls in this schedule's trigger minute."""
        return moment.hour == self.hour and moment.minute == self.minute

    @property
    def label(self) -> str:
        return f"{self.number} {self.name}".strip()

    @property
    def origin(self) -> str | None:
        return self.route[0] if self.route else None


@dataclass(frozen=True)
class Registration:
    """Pending actor-to-job association (``train_registrations``)."""

    actor: str = ""
    number: int = 0
    station: str = ""

    @classmethod
    def from_fields(cls, fields: Sequence[str]) -> Registration:
        return cls(
            actor=_text(fields, 0),
            number=_int(fields, 1, 0),
            station=_text(fields, 2),
        )

    def to_fields(self) -> list[str]:
        return [self.actor, str(self.number), self.station]


@dataclass(frozen=True)
class Completion:
    """Finished participation (``train_completions``). Append-only."""

    timestamp: datetime = EPOCH
    actor: str = ""
    number: int = 0

    @classmethod
    def from_fields(cls, fields: Sequence[str]) -> Completion:
        try:
            timestamp = datetime.fromisoformat(_text(fields, 0).strip())
        except ValueError:
            timestamp = EPOCH
        return cls(
            timestamp=timestamp,
            actor=_text(fields, 1),
            number=_int(fields, 2, 0),
        )

    def to_fields(self) -> list[str]:
        return [self.timestamp.isoformat(), self.actor, str(self.number)]
