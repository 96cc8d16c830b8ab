"""Scoring aggregator: cumulative rewards per actor.

Pure read-side computation over ``train_completions`` and the schedule
catalog. A completion whose job number is no longer in the catalog is worth
nothing.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass

from railyard.core.errors import StorageError
from railyard.core.logging import get_logger
from railyard.core.store import RecordStore
from railyard.scheduling.catalog import ScheduleCatalog
from railyard.scheduling.records import COMPLETIONS_TABLE, Completion
from railyard.scheduling.service import abbreviate

logger = get_logger(__name__)


@dataclass(frozen=True)
class ActorScore:
    actor: str
    total: int
    rides: int


async def tally(store: RecordStore) -> list[ActorScore]:
    """Totals per actor (case-insensitive), highest first, ties by name."""
    completions = await store.select(COMPLETIONS_TABLE, Completion)
    if not completions:
        return []
    rewards = await ScheduleCatalog(store).rewards()

    totals: dict[str, int] = defaultdict(int)
    rides: dict[str, int] = defaultdict(int)
    for completion in completions:
        actor = completion.actor.lower()
        totals[actor] += rewards.get(completion.number, 0)
        rides[actor] += 1

    ranked = sorted(totals, key=lambda a: (-totals[a], a))
    return [ActorScore(actor=a, total=totals[a], rides=rides[a]) for a in ranked]


async def score(store: RecordStore) -> str:
    """Ranked leaderboard, e.g. ``1. ALI 20 | 2. BOB 10``."""
    try:
        scores = await tally(store)
    except StorageError as e:
        logger.error("score_read_failed", **e.to_dict())
        return "Could not read arrivals."

    if not scores:
        return "There are no arrivals."
    return " | ".join(
        f"{position}. {abbreviate(s.actor)} {s.total}" for position, s in enumerate(scores, 1)
    )
