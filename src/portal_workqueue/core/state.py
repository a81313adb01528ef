# src/portal_workqueue/core/state.py

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any

from ..tasks.inflight import InFlightTable
from .ports import Clock
from .providers import ProviderRegistry


class SystemClock:
    """Real time: ``time.time()`` and ``asyncio.sleep``."""

    def now(self) -> float:
        return time.time()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, float(seconds)))


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    providers: ProviderRegistry
    clock: Clock = field(default_factory=SystemClock)

    # One per process: concurrent run() calls for the same key share one body.
    inflight: InFlightTable = field(default_factory=InFlightTable)

    # Workflows started by connectors that nobody awaits directly.
    background: set[asyncio.Task[Any]] = field(default_factory=set)
