"""Registration surface: the ``board`` and ``deboard`` commands.

This is the only externally triggered writer of ``train_registrations``.
Service instances consume the rows at each stop and clear them afterwards.

The "already registered" check and the write are two separate store calls,
each taking the store lock on its own. Two concurrent ``register`` calls for
the same actor can both pass the check; the second write then replaces the
first (the write is keyed by actor), so the table still holds one row per
actor but the second caller is told it boarded a train it may have just
been displaced from.
"""

from __future__ import annotations

from railyard.core.logging import bind_context, get_logger
from railyard.core.store import RecordStore
from railyard.scheduling.records import REGISTRATIONS_TABLE, Registration

logger = get_logger(__name__)


def parse_number(target: str | int | None) -> int:
    """Job number from command text; anything unparsable is 0."""
    if isinstance(target, int):
        return target
    try:
        return int(str(target).strip())
    except (TypeError, ValueError):
        return 0


class RegistrationDesk:
    """Attach actors to running or upcoming services."""

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    async def current(self, actor: str) -> Registration | None:
        """The actor's pending registration, if any."""
        wanted = actor.lower()
        rows = await self.store.select(
            REGISTRATIONS_TABLE, Registration, lambda r: r.actor.lower() == wanted
        )
        return rows[0] if rows else None

    async def register(self, actor: str, target: str | int | None, station: str) -> str:
        """Register ``actor`` for job ``target`` at ``station``.

        Returns:
            Human-readable confirmation or rejection
        """
        bind_context(actor=actor, command="board")
        number = parse_number(target)

        existing = await self.current(actor)
        if existing is not None:
            logger.info("registration_rejected", number=number, current=existing.number)
            return f"Cannot board {number}! You are already on train {existing.number}."

        wanted = actor.lower()
        registration = Registration(actor=wanted, number=number, station=station.lower())
        await self.store.update(
            REGISTRATIONS_TABLE, registration, lambda r: r.actor.lower() == wanted
        )
        logger.info("registration_accepted", number=number, station=registration.station)
        return f"You boarded train {number}."

    async def deboard(self, actor: str) -> str:
        """Drop the actor's pending registration."""
        bind_context(actor=actor, command="deboard")
        wanted = actor.lower()
        removed = await self.store.delete(
            REGISTRATIONS_TABLE, Registration, lambda r: r.actor.lower() == wanted
        )
        if not removed:
            return "You are not waiting for any train."
        logger.info("registration_withdrawn", removed=removed)
        return "You left the platform."
