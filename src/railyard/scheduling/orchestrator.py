"""Service orchestrator - the tick loop that fires schedules.

Manifesto:
    The orchestrator is a beat-as-poller: it wakes on a fixed interval,
    compares the clock's hour and minute with every schedule, and launches
    a fresh service instance for each one that matches. Instances are
    detached tasks; stopping the orchestrator stops new launches but never
    interrupts a service already on its way.

Tags:
    railyard, scheduling, orchestrator, beat-as-poller, asyncio

Doc-Types:
    api-reference, architecture-diagram


┌──────────────────────────────────────────────────────────────────────────────┐
│  ORCHESTRATOR LOOP                                                            │
│                                                                               │
│   run()                                                                       │
│     ├── clear stale registrations left by a previous process                  │
│     ├── reload()  ── build one template instance per schedule                 │
│     └── while not cancelled:                                                  │
│            tick()                                                             │
│              ├── now = clock()                                                │
│              └── for each template due now and not yet fired this minute:     │
│                     asyncio.create_task(template.clone().run())               │
│            sleep(tick_interval)                                               │
│                                                                               │
│   Known limitation: only hour/minute are compared. A tick delayed past the    │
│   whole trigger minute silently skips that day's run.                         │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime

from railyard.core.errors import ErrorCategory, RailyardError, categorize_error
from railyard.core.logging import get_logger
from railyard.core.store import RecordStore
from railyard.scheduling.catalog import ScheduleCatalog
from railyard.scheduling.notify import Notifier
from railyard.scheduling.records import REGISTRATIONS_TABLE, Registration, Schedule
from railyard.scheduling.service import (
    Clock,
    ServiceInstance,
    ServiceState,
    ServiceTiming,
    Sleeper,
    utcnow,
)

logger = get_logger(__name__)


@dataclass
class OrchestratorStats:
    """Statistics for the orchestrator."""

    tick_count: int = 0
    instances_launched: int = 0
    instances_completed: int = 0
    instances_derailed: int = 0
    instances_failed: int = 0
    last_tick: datetime | None = None
    last_error: str | None = None
    last_error_category: ErrorCategory | None = None


class Orchestrator:
    """Tick loop that matches the clock against the schedule catalog.

    Example:
        >>> orchestrator = Orchestrator(store, OutboxNotifier("out.txt"), ServiceTiming())
        >>> task = asyncio.create_task(orchestrator.run())
        >>> # ... later ...
        >>> orchestrator.stop()
        >>> await task
        >>> await orchestrator.wait_in_flight()
    """

    def __init__(
        self,
        store: RecordStore,
        notifier: Notifier,
        timing: ServiceTiming | None = None,
        *,
        tick_interval: float = 60.0,
        clock: Clock = utcnow,
        sleep: Sleeper = asyncio.sleep,
        rng_factory: Callable[[], random.Random] = random.Random,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            store: Shared record store
            notifier: Outbound channel handed to every instance
            timing: Per-instance timing and derailment settings
            tick_interval: Seconds between ticks (default: 60s)
            clock: Source of the current UTC time
            sleep: Coroutine used for every wait (tick and instance stages)
            rng_factory: Builds the random source of each launched instance
            cancel_event: Flag shared with the outer process; set to stop
        """
        self.store = store
        self.notifier = notifier
        self.timing = timing or ServiceTiming()
        self.tick_interval = tick_interval
        self.catalog = ScheduleCatalog(store)

        self._clock = clock
        self._sleep = sleep
        self._rng_factory = rng_factory
        self._cancelled = cancel_event or asyncio.Event()
        self._templates: list[ServiceInstance] = []
        self._in_flight: set[asyncio.Task[ServiceState]] = set()
        self._fired: dict[Schedule, tuple[date, int, int]] = {}
        self._stats = OrchestratorStats()

    # === Lifecycle ===

    async def reload(self) -> int:
        """Rebuild the template instances from the schedule catalog.

        Returns:
            Number of schedules loaded
        """
        schedules = await self.catalog.load()
        self._templates = [
            ServiceInstance(
                schedule,
                self.store,
                self.notifier,
                self.timing,
                sleep=self._sleep,
                clock=self._clock,
            )
            for schedule in schedules
        ]
        logger.info("catalog_loaded", schedules=len(self._templates))
        return len(self._templates)

    async def run(self) -> None:
        """Run the tick loop until ``stop()`` is called.

        Cancellation is polled at the top of each iteration only.
        """
        await self._clear_stale_registrations()
        await self.reload()

        logger.info("orchestrator_started", tick_interval=self.tick_interval)
        while not self._cancelled.is_set():
            await self.tick()
            await self._sleep(self.tick_interval)
        logger.info("orchestrator_stopped", in_flight=len(self._in_flight))

    def stop(self) -> None:
        """Stop launching new instances. In-flight instances keep running."""
        self._cancelled.set()

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    # === Tick Processing ===

    async def tick(self) -> list[asyncio.Task[ServiceState]]:
        """Launch every instance whose trigger matches the current minute.

        A schedule fires at most once per calendar minute, however many
        ticks fall inside it.

        Returns:
            Tasks launched on this tick
        """
        now = self._clock()
        self._stats.tick_count += 1
        self._stats.last_tick = now

        slot = (now.date(), now.hour, now.minute)
        launched = []
        for template in self._templates:
            schedule = template.schedule
            if not schedule.fires_at(now):
                continue
            # ticks shorter than a minute land in the same slot more than once
            if self._fired.get(schedule) == slot:
                logger.debug("schedule_already_fired", number=schedule.number)
                continue
            self._fired[schedule] = slot
            launched.append(self._launch(template))

        if launched:
            logger.info("schedules_fired", count=len(launched), at=now.strftime("%H:%M"))
        return launched

    def _launch(self, template: ServiceInstance) -> asyncio.Task[ServiceState]:
        instance = template.clone(rng=self._rng_factory())
        task = asyncio.create_task(
            self._run_instance(instance), name=f"service-{instance.number}"
        )
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        self._stats.instances_launched += 1
        return task

    async def _run_instance(self, instance: ServiceInstance) -> ServiceState:
        try:
            state = await instance.run()
        except Exception as e:
            self._stats.instances_failed += 1
            category = categorize_error(e)
            self._stats.last_error = str(e)
            self._stats.last_error_category = category
            logger.exception(
                "service_crashed", number=instance.number, category=category.value
            )
            return ServiceState.ABORTED

        if state is ServiceState.COMPLETED:
            self._stats.instances_completed += 1
        elif state is ServiceState.DERAILED:
            self._stats.instances_derailed += 1
        else:
            self._stats.instances_failed += 1
        return state

    async def _clear_stale_registrations(self) -> None:
        try:
            removed = await self.store.delete(REGISTRATIONS_TABLE, Registration, lambda _: True)
        except RailyardError as e:
            self._stats.last_error = e.message
            logger.error("stale_registrations_not_cleared", **e.to_dict())
            return
        if removed:
            logger.info("stale_registrations_cleared", removed=removed)

    # === In-flight Tracking ===

    @property
    def in_flight(self) -> frozenset[asyncio.Task[ServiceState]]:
        return frozenset(self._in_flight)

    async def wait_in_flight(self) -> list[ServiceState]:
        """Wait for every launched instance still running to finish."""
        if not self._in_flight:
            return []
        return list(await asyncio.gather(*self._in_flight))

    @property
    def stats(self) -> OrchestratorStats:
        return self._stats

    def reset_stats(self) -> None:
        self._stats = OrchestratorStats()
