"""Tracking of in-flight result publications."""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import NamedTuple

log = logging.getLogger(__name__)


class PublicationKey(NamedTuple):
    """Identity of one pending publication."""

    case_ids: str
    test_id: str
    retry: int = 0


class PublishCoordinator:
    """Keeps the set of pending publications and drains it at the end of a run.

    Publications run as independent tasks. Each task only adds and removes
    its own key, so no lock is needed on a single event loop.
    """

    def __init__(self) -> None:
        self._pending: set[PublicationKey] = set()
        self._published = 0

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def published_count(self) -> int:
        return self._published

    def enqueue(self, key: PublicationKey) -> None:
        self._pending.add(key)

    def dequeue(self, key: PublicationKey) -> None:
        """Remove a publication; removing an unknown key is a no-op."""
        self._pending.discard(key)

    def record_published(self) -> None:
        self._published += 1

    @asynccontextmanager
    async def track(self, key: PublicationKey) -> AsyncGenerator[None, None]:
        """Keep ``key`` pending for the duration of the block."""
        self.enqueue(key)
        try:
            yield
        finally:
            self.dequeue(key)

    async def drain(
        self,
        poll_interval: float = 0.25,
        timeout: float | None = None,
    ) -> bool:
        """Wait for every pending publication to finish.

        Args:
            poll_interval: Seconds between checks
            timeout: Maximum wait time in seconds, None to wait forever

        Returns:
            True when nothing is pending, False if the timeout expired first

        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        previous = len(self._pending)

        while self._pending:
            remaining = len(self._pending)
            if remaining < previous:
                log.info(
                    "Waiting for all results to be published. Remaining %d results",
                    remaining,
                )
                previous = remaining

            if deadline is not None and loop.time() >= deadline:
                log.warning(
                    "Finalizing with %d result(s) still pending after %s seconds",
                    remaining,
                    timeout,
                )
                return False

            await asyncio.sleep(poll_interval)

        return True
