"""Service scheduler for railyard.

Manifesto:
    A schedule fires at a wall-clock minute; the orchestrator turns it into a
    service instance that travels its route on its own task, reading and
    writing registrations and completions through the shared record store
    while command handlers do the same.

Quick Start::

    from railyard.core.store import RecordStore
    from railyard.scheduling import Orchestrator, OutboxNotifier, ServiceTiming

    store = RecordStore("data/")
    orchestrator = Orchestrator(store, OutboxNotifier("out.txt"), ServiceTiming())
    await orchestrator.run()

Tables:
    - train_schedules: schedule definitions (read-only to the core)
    - train_registrations: pending actor-to-job associations
    - train_completions: finished rides, append-only
"""

from railyard.scheduling.catalog import ScheduleCatalog
from railyard.scheduling.notify import Notifier, OutboxNotifier
from railyard.scheduling.orchestrator import Orchestrator, OrchestratorStats
from railyard.scheduling.records import (
    COMPLETIONS_TABLE,
    REGISTRATIONS_TABLE,
    SCHEDULES_TABLE,
    Completion,
    Registration,
    Schedule,
)
from railyard.scheduling.registration import RegistrationDesk, parse_number
from railyard.scheduling.scoring import ActorScore, score, tally
from railyard.scheduling.service import (
    ServiceInstance,
    ServiceState,
    ServiceTiming,
    abbreviate,
)

__all__ = [
    "COMPLETIONS_TABLE",
    "REGISTRATIONS_TABLE",
    "SCHEDULES_TABLE",
    "ActorScore",
    "Completion",
    "Notifier",
    "Orchestrator",
    "OrchestratorStats",
    "OutboxNotifier",
    "Registration",
    "RegistrationDesk",
    "Schedule",
    "ScheduleCatalog",
    "ServiceInstance",
    "ServiceState",
    "ServiceTiming",
    "abbreviate",
    "parse_number",
    "score",
    "tally",
]
