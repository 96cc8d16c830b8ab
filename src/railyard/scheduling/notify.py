"""Outbound notification channel.

Service instances talk to the outside world only through a ``Notifier``:
a plain text line addressed to a channel. The chat transport that actually
delivers the line is not part of this package. ``OutboxNotifier`` writes to
the outbox file the transport tails, one ``<target> <text>`` line per
message.

Delivery is fire-and-forget: a notifier raises ``NotificationError`` and the
caller logs it and carries on.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Protocol, runtime_checkable

from railyard.core.errors import NotificationError
from railyard.core.logging import get_logger

logger = get_logger(__name__)


@runtime_checkable
class Notifier(Protocol):
    """Protocol for outbound message sinks.

    Example (custom notifier):
        >>> class PrintNotifier:
        ...     async def send(self, target: str, text: str) -> None:
        ...         print(target, text)
    """

    async def send(self, target: str, text: str) -> None:
        """Deliver ``text`` to the conversation ``target``.

        Raises:
            NotificationError: The message could not be handed off
        """
        ...


class OutboxNotifier:
    """Append outbound lines to a file tailed by the chat transport."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = asyncio.Lock()

    async def send(self, target: str, text: str) -> None:
        line = f"{target} {' '.join(text.splitlines())}\n"
        async with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.path, "a", encoding="utf-8") as handle:
                    handle.write(line)
            except OSError as exc:
                raise NotificationError("Could not write to outbox", cause=exc).with_context(
                    path=str(self.path), station=target
                ) from exc
        logger.debug("notification_queued", target=target)
