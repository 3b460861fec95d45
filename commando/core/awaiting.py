import asyncio
import logging
from collections.abc import AsyncIterator, Hashable
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)


class AwaitingReplies:
    """Per (author, destination) locks held while a command waits for answers.

    The dispatcher ignores new messages from a pair whose lock is held, so a
    prompt answer is never reinterpreted as a new command.
    """

    def __init__(self) -> None:
        self._locks: dict[tuple[Hashable, Hashable], asyncio.Lock] = {}
        self._holders: dict[tuple[Hashable, Hashable], int] = {}

    def is_awaiting(self, author_id: Hashable, destination_id: Hashable) -> bool:
        lock = self._locks.get((author_id, destination_id))
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, author_id: Hashable, destination_id: Hashable) -> AsyncIterator[None]:
        key = (author_id, destination_id)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                logger.debug(f"Awaiting replies from {author_id} in {destination_id}")
                yield
        finally:
            self._holders[key] -= 1
            if not self._holders[key]:
                del self._holders[key]
                del self._locks[key]
