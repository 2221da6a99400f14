"""One-time asynchronous setup shared by concurrent callers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class OneTimeSetup:
    """Runs an async setup coroutine once and lets every caller await it.

    The first call to :meth:`wait` starts the setup task; callers arriving
    while it is in flight await the same task. After a successful run,
    :meth:`wait` returns immediately. A failed run is forgotten once its
    waiters have seen the error, so the next caller starts a fresh attempt.
    """

    def __init__(self, setup: Callable[[], Awaitable[None]], name: str = "setup"):
        self._setup = setup
        self._name = name
        self._task: asyncio.Task[None] | None = None

    @property
    def done(self) -> bool:
        """True once setup has completed successfully."""
        return (
            self._task is not None
            and self._task.done()
            and not self._task.cancelled()
            and self._task.exception() is None
        )

    async def wait(self) -> None:
        """Start setup if needed and wait for it to finish."""
        if self._task is None:
            logger.debug(f"Starting {self._name}")
            self._task = asyncio.ensure_future(self._setup())
        task = self._task
        try:
            # shield: a cancelled caller must not cancel setup for the others
            await asyncio.shield(task)
        except Exception as e:
            if self._task is task and task.done():
                logger.warning(f"{self._name} failed: {e}")
                self._task = None
            raise
