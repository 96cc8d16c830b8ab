"""Service instance: one running state machine per fired schedule.

Manifesto:
    A fired schedule becomes an independent, long-running task that walks
    its route station by station. Each hop sleeps for a randomized travel
    time, may derail, picks up registered passengers, dwells, and departs.
    The instance owns only an in-memory passenger manifest; everything
    that must survive it (registrations consumed, completions earned) goes
    through the shared record store.

Tags:
    railyard, scheduling, state-machine, asyncio, simulation

Doc-Types:
    api-reference, architecture-diagram


┌──────────────────────────────────────────────────────────────────────────────┐
│  SERVICE INSTANCE LIFECYCLE                                                   │
│                                                                               │
│   AT_ORIGIN                                                                   │
│      │                                                                        │
│      ▼            for each station in route:                                  │
│   TRAVELLING ──── sleep (delta + random delay) minutes                        │
│      │                                                                        │
│      ├── random() < derail_probability ──► DERAILED (terminal)                │
│      │        notify survivors, clear the job's registrations                 │
│      ▼                                                                        │
│   ARRIVED ─────── merge registrations for (number, station), notify           │
│      │                                                                        │
│      ▼                                                                        │
│   BOARDING ────── sleep dwell minutes, merge late registrants,                │
│      │            clear every registration for the job number                 │
│      ▼                                                                        │
│   DEPARTING ───── notify departure (or end of service on the last stop)       │
│      │                                                                        │
│      ▼                                                                        │
│   COMPLETED ───── one completion row per passenger, clear registrations       │
│                                                                               │
│   ABORTED ─────── a StorageError ended this instance; nothing else stops      │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from railyard.core.errors import InvalidConfigError, NotificationError, StorageError
from railyard.core.logging import bind_context, get_logger
from railyard.core.settings import RailyardSettings
from railyard.core.store import RecordStore
from railyard.scheduling.notify import Notifier
from railyard.scheduling.records import (
    COMPLETIONS_TABLE,
    REGISTRATIONS_TABLE,
    Completion,
    Registration,
    Schedule,
)

logger = get_logger(__name__)

Sleeper = Callable[[float], Awaitable[None]]
Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(UTC)


def abbreviate(actor: str) -> str:
    """Short public form of an actor name: first three alphanumerics, upper-cased."""
    return "".join(c for c in actor.upper() if c.isalnum())[:3]


class ServiceState(str, Enum):
    """Stages of a service instance."""

    AT_ORIGIN = "AT_ORIGIN"
    TRAVELLING = "TRAVELLING"
    ARRIVED = "ARRIVED"
    BOARDING = "BOARDING"
    DEPARTING = "DEPARTING"
    DERAILED = "DERAILED"
    COMPLETED = "COMPLETED"
    ABORTED = "ABORTED"

    @property
    def is_terminal(self) -> bool:
        return self in (ServiceState.DERAILED, ServiceState.COMPLETED, ServiceState.ABORTED)


@dataclass(frozen=True)
class ServiceTiming:
    """Timing and risk parameters shared by every instance.

    Durations are in simulated minutes; ``minute_seconds`` converts them to
    wall-clock seconds (0 makes every sleep immediate).
    """

    minute_seconds: float = 60.0
    max_delay: int = 8
    dwell_minutes: int = 5
    derail_probability: float = 0.05

    def __post_init__(self) -> None:
        if self.minute_seconds < 0:
            raise InvalidConfigError("minute_seconds", self.minute_seconds)
        if self.max_delay < 0:
            raise InvalidConfigError("max_delay", self.max_delay)
        if self.dwell_minutes < 0:
            raise InvalidConfigError("dwell_minutes", self.dwell_minutes)
        if not 0.0 <= self.derail_probability <= 1.0:
            raise InvalidConfigError(
                "derail_probability",
                self.derail_probability,
                "derail_probability must be between 0 and 1",
            )

    @classmethod
    def from_settings(cls, settings: RailyardSettings) -> ServiceTiming:
        return cls(
            minute_seconds=settings.minute_seconds,
            max_delay=settings.max_delay_minutes,
            dwell_minutes=settings.dwell_minutes,
            derail_probability=settings.derail_probability,
        )

    def seconds(self, minutes: float) -> float:
        return minutes * self.minute_seconds


class ServiceInstance:
    """One running service for a single fired schedule.

    Example:
        >>> instance = ServiceInstance(schedule, store, notifier, ServiceTiming())
        >>> final_state = await instance.clone().run()
    """

    def __init__(
        self,
        schedule: Schedule,
        store: RecordStore,
        notifier: Notifier,
        timing: ServiceTiming | None = None,
        *,
        rng: random.Random | None = None,
        sleep: Sleeper = asyncio.sleep,
        clock: Clock = utcnow,
    ) -> None:
        self.schedule = schedule
        self.store = store
        self.notifier = notifier
        self.timing = timing or ServiceTiming()
        self._rng = rng or random.Random()
        self._sleep = sleep
        self._clock = clock
        self.passengers: list[str] = []
        self.state = ServiceState.AT_ORIGIN
        self.delays: list[int] = []

    def clone(self, rng: random.Random | None = None) -> ServiceInstance:
        """Fresh instance of the same schedule, ready to run."""
        return ServiceInstance(
            self.schedule,
            self.store,
            self.notifier,
            self.timing,
            rng=rng,
            sleep=self._sleep,
            clock=self._clock,
        )

    @property
    def number(self) -> int:
        return self.schedule.number

    @property
    def manifest(self) -> str:
        return ", ".join(abbreviate(p) for p in self.passengers)

    # === Lifecycle ===

    async def run(self) -> ServiceState:
        """Walk the route to completion or derailment.

        A ``StorageError`` ends this instance only: it is logged and the
        instance finishes in ``ABORTED``.
        """
        bind_context(number=self.number)
        logger.info("service_started", name=self.schedule.name, route=list(self.schedule.route))
        try:
            await self._run()
        except StorageError as exc:
            self.state = ServiceState.ABORTED
            logger.error("service_aborted", **exc.to_dict())
        return self.state

    async def _run(self) -> None:
        route = self.schedule.route
        label = self.schedule.label

        for index, station in enumerate(route):
            bind_context(station=station)

            self.state = ServiceState.TRAVELLING
            delay = self._rng.randint(0, self.timing.max_delay)
            self.delays.append(delay)
            await self._sleep(self.timing.seconds(self.schedule.delta + delay))

            if self._rng.random() < self.timing.derail_probability:
                await self._derail(station)
                return

            await self._board(station)
            self.state = ServiceState.ARRIVED
            logger.info("service_arrived", delay=delay, passengers=len(self.passengers))
            await self._announce(
                station,
                f"--> 🚉 {label} has arrived at {station} ({delay} min delayed). "
                f"Points: {self.schedule.score}. To board: !board {self.number}",
            )

            self.state = ServiceState.BOARDING
            await self._sleep(self.timing.seconds(self.timing.dwell_minutes))
            await self._board(station)
            await self._clear_registrations()

            self.state = ServiceState.DEPARTING
            if index < len(route) - 1:
                await self._announce(
                    station, f"<-- 🚉 {label} has departed {station}. Passengers: {self.manifest}"
                )
            else:
                await self._announce(
                    station,
                    f"--- 🛑 {label} has ended. Passengers: {self.manifest}. "
                    f"Route: {' > '.join(route)}",
                )

        await self._complete()
        self.state = ServiceState.COMPLETED
        logger.info("service_completed", passengers=len(self.passengers))

    # === Stages ===

    async def _derail(self, station: str) -> None:
        self.state = ServiceState.DERAILED
        logger.warning("service_derailed", survivors=len(self.passengers))
        await self._announce(
            station,
            f"!!! ⚠️ {self.schedule.label} has derailed before reaching {station}! "
            f"Survivors: {self.manifest}",
        )
        await self._clear_registrations()

    async def _board(self, station: str) -> None:
        """Merge registrations made at ``station`` for this job into the manifest."""
        wanted = station.lower()
        registrations = await self.store.select(
            REGISTRATIONS_TABLE,
            Registration,
            lambda r: r.number == self.number and r.station.lower() == wanted,
        )
        self._merge(r.actor for r in registrations)

    async def _clear_registrations(self) -> None:
        removed = await self.store.delete(
            REGISTRATIONS_TABLE, Registration, lambda r: r.number == self.number
        )
        if removed:
            logger.debug("registrations_cleared", removed=removed)

    async def _complete(self) -> None:
        finished_at = self._clock()
        for passenger in self.passengers:
            await self.store.insert(
                COMPLETIONS_TABLE,
                Completion(timestamp=finished_at, actor=passenger, number=self.number),
            )
        await self._clear_registrations()

    async def _announce(self, target: str, text: str) -> None:
        try:
            await self.notifier.send(target, text)
        except NotificationError as exc:
            logger.warning("notification_failed", target=target, **exc.to_dict())

    def _merge(self, actors: Iterable[str]) -> None:
        for actor in actors:
            actor = actor.lower()
            if actor and actor not in self.passengers:
                self.passengers.append(actor)
