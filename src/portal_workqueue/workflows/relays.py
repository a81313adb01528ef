# src/portal_workqueue/workflows/relays.py

from __future__ import annotations

import logging
from typing import Any

from ..core.providers import ProviderName
from ..errors import RelaysNotConnectedError
from ..tasks.task_base import Task, task_registry
from ..tasks.task_models import EXPIRED

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 1.0
MAX_ATTEMPTS = 5


@task_registry.register
class CheckRelayStatusTask(Task[bool]):
    """One connectivity probe; the answer is reused for a second."""

    requires = (ProviderName.RELAY_STATUS,)
    ttl = POLL_INTERVAL_SECONDS

    async def execute(self, providers: tuple[Any, ...]) -> bool:
        (relay_status,) = providers
        return bool(relay_status.are_relays_connected())


@task_registry.register
class WaitForRelaysConnectedTask(Task[None]):
    """
    Poll connectivity until a relay is up.

    Up to MAX_ATTEMPTS probes, POLL_INTERVAL_SECONDS apart (through the app
    clock), then RelaysNotConnectedError. The outcome is never cached: every
    caller that arrives after it settles polls again.
    """

    def expiry_for(self, now: float, *args: Any) -> float | None:
        return EXPIRED

    async def execute(self, providers: tuple[Any, ...]) -> None:
        attempt = 0
        while attempt < MAX_ATTEMPTS:
            attempt += 1
            if await CheckRelayStatusTask(self.state).run():
                if attempt > 1:
                    logger.info("Relays connected after %d attempt(s)", attempt)
                return
            if attempt < MAX_ATTEMPTS:
                await self.state.clock.sleep(POLL_INTERVAL_SECONDS)

        logger.warning("Relays not connected after %d attempts", attempt)
        raise RelaysNotConnectedError(attempt)
