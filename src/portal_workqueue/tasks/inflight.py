# src/portal_workqueue/tasks/inflight.py

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Coroutine, Iterator
from typing import Any

logger = logging.getLogger(__name__)


class InFlightTable:
    """
    In-memory map of cache key -> running task body.

    A second caller for a key that is already running awaits the same
    asyncio.Task instead of starting the body again. Entries are never
    persisted and disappear when the body settles.
    """

    def __init__(self) -> None:
        self._running: dict[str, asyncio.Task[Any]] = {}

    def get(self, key: str) -> asyncio.Task[Any] | None:
        return self._running.get(key)

    def start(self, key: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        if key in self._running:
            coro.close()
            raise RuntimeError(f"Task already in flight: {key}")
        fut = asyncio.ensure_future(coro)
        self._running[key] = fut
        fut.add_done_callback(self._observe)
        return fut

    def discard(self, key: str, fut: asyncio.Task[Any] | None = None) -> None:
        """Remove ``key``; when ``fut`` is given, only if it is still the registered body."""
        current = self._running.get(key)
        if current is None:
            return
        if fut is not None and current is not fut:
            return
        del self._running[key]

    @staticmethod
    def _observe(fut: asyncio.Task[Any]) -> None:
        # Every waiter may have been cancelled; read the outcome so asyncio stays quiet.
        if fut.cancelled():
            return
        with contextlib.suppress(Exception):
            fut.exception()

    def keys(self) -> list[str]:
        return list(self._running)

    def __contains__(self, key: object) -> bool:
        return key in self._running

    def __len__(self) -> int:
        return len(self._running)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._running))
