"""Read-only view over the ``train_schedules`` table."""

from __future__ import annotations

from railyard.core.store import RecordStore
from railyard.scheduling.records import SCHEDULES_TABLE, Schedule


class ScheduleCatalog:
    """Schedule definitions as the core sees them.

    Schedules are created out of band (operators edit the table); the core
    only reads them.
    """

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    async def load(self) -> list[Schedule]:
        """Return every schedule in table order."""
        return await self.store.select(SCHEDULES_TABLE, Schedule)

    async def get(self, number: int) -> Schedule | None:
        """Return the first schedule with ``number``, if any."""
        matches = await self.store.select(SCHEDULES_TABLE, Schedule, lambda s: s.number == number)
        return matches[0] if matches else None

    async def rewards(self) -> dict[int, int]:
        """Map job number to reward. Later rows win on duplicate numbers."""
        return {s.number: s.score for s in await self.load()}

    async def timetable(self) -> str:
        """Render the departure board, one entry per schedule."""
        schedules = await self.load()
        if not schedules:
            return "There are no scheduled trains."
        return " | ".join(
            f"{s.number}: {s.hour:02d}:{s.minute:02d} (UTC) {s.origin or 'NA'}" for s in schedules
        )
