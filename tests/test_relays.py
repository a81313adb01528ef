# tests/test_relays.py

from __future__ import annotations

import asyncio

import pytest

from portal_workqueue.errors import RelaysNotConnectedError
from portal_workqueue.workflows.relays import (
    MAX_ATTEMPTS,
    POLL_INTERVAL_SECONDS,
    CheckRelayStatusTask,
    WaitForRelaysConnectedTask,
)


@pytest.mark.asyncio
async def test_connected_relays_return_immediately(state, relays, clock) -> None:
    await WaitForRelaysConnectedTask(state).run()
    assert relays.calls == 1
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_polls_once_per_second_until_connected(state, relays, clock) -> None:
    relays.script = [False, False, True]
    relays.clock = clock
    t0 = clock.now()

    await WaitForRelaysConnectedTask(state).run()

    assert relays.probe_times == [t0, t0 + 1.0, t0 + 2.0]
    assert clock.sleeps == [POLL_INTERVAL_SECONDS, POLL_INTERVAL_SECONDS]


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts(state, relays, clock) -> None:
    relays.default = False

    with pytest.raises(RelaysNotConnectedError) as exc:
        await WaitForRelaysConnectedTask(state).run()

    assert exc.value.attempts == MAX_ATTEMPTS == 5
    assert relays.calls == 5
    # No sleep after the last probe.
    assert clock.sleeps == [1.0] * 4


@pytest.mark.asyncio
async def test_wait_result_is_never_reused(state, storage, relays, clock) -> None:
    task = WaitForRelaysConnectedTask(state)
    await task.run()
    assert storage.cache_get(task.cache_key, now_ts=0.0) is None

    clock.advance(POLL_INTERVAL_SECONDS)
    relays.script = [False, True]
    await WaitForRelaysConnectedTask(state).run()
    assert relays.calls == 3


@pytest.mark.asyncio
async def test_probe_answer_is_cached_within_the_poll_interval(state, relays, clock) -> None:
    assert await CheckRelayStatusTask(state).run() is True
    relays.default = False
    assert await CheckRelayStatusTask(state).run() is True
    assert relays.calls == 1

    clock.advance(POLL_INTERVAL_SECONDS)
    assert await CheckRelayStatusTask(state).run() is False
    assert relays.calls == 2


@pytest.mark.asyncio
async def test_concurrent_waits_share_one_poll_loop(state, relays, clock) -> None:
    relays.script = [False, True]
    await asyncio.gather(*(WaitForRelaysConnectedTask(state).run() for _ in range(3)))
    assert relays.calls == 2
    assert clock.sleeps == [1.0]
