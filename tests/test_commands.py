# tests/test_commands.py

from __future__ import annotations

import asyncio

import pytest

from portal_workqueue.cli.commands import CommandRegistry, registry
from portal_workqueue.core.providers import ProviderName
from portal_workqueue.models import PaymentStatusKind
from portal_workqueue.providers.prompt_user import PromptUserWithPendingCard
from portal_workqueue.tasks.task_drainer import queue_for


async def _settle(state, rounds: int = 50) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture()
def cards(state) -> PromptUserWithPendingCard:
    cards = PromptUserWithPendingCard()
    state.providers.register(cards, ProviderName.PROMPT_USER)
    return cards


@pytest.mark.asyncio
async def test_command_registry_routes_sync_and_async_handlers(state) -> None:
    reg = CommandRegistry()
    called = {"sync": 0, "async": 0}

    def h_sync(state, args):
        called["sync"] += 1
        return "sync " + " ".join(args)

    async def h_async(state, args):
        called["async"] += 1
        return "async"

    reg.register("a", h_sync, "a", aliases=["aa"])
    reg.register("b", h_async, "b")

    assert await reg.handle(state, "/a x y") == "sync x y"
    assert await reg.handle(state, "/AA") == "sync "
    assert await reg.handle(state, "/b") == "async"
    assert called == {"sync": 2, "async": 1}
    assert "/a - a" in reg.build_help()


@pytest.mark.asyncio
async def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert await reg.handle(state, "hello") is None
    assert "Unknown command" in (await reg.handle(state, "/nope") or "")
    assert "Empty command" in (await reg.handle(state, "/") or "")


@pytest.mark.asyncio
async def test_status_and_queue_commands(state) -> None:
    queue_for(state).enqueue("CheckRelayStatusTask", "[]", None, priority=2)

    status = await registry.handle(state, "/status")
    assert "Queued tasks: 1" in (status or "")

    listing = await registry.handle(state, "/queue")
    assert "CheckRelayStatusTask priority=2" in (listing or "")


@pytest.mark.asyncio
async def test_drain_command_reports_counts(state, storage) -> None:
    queue_for(state).enqueue("CheckRelayStatusTask", "[]", None)
    reply = await registry.handle(state, "/drain")
    assert reply == "Drained 1 task(s): 1 succeeded, 0 failed."
    assert storage.queue_count() == 0


@pytest.mark.asyncio
async def test_pay_then_approve_completes_payment(state, cards, protocol, wallet) -> None:
    reply = await registry.handle(state, "/pay 1500")
    assert "Payment request submitted" in (reply or "")
    await _settle(state)

    (pending,) = cards.pending()
    listing = await registry.handle(state, "/pending")
    assert pending.id in (listing or "")

    assert await registry.handle(state, f"/approve {pending.id}") == f"Request {pending.id} approved."
    await asyncio.gather(*state.background)

    kinds = [r.payload.kind for r in protocol.replies]
    assert kinds == [PaymentStatusKind.APPROVED, PaymentStatusKind.SUCCESS]
    assert wallet.balance_msat == 100_000_000 - 1_500_000


@pytest.mark.asyncio
async def test_auth_then_decline_with_reason(state, cards, protocol, activities) -> None:
    await registry.handle(state, "/auth npub-shop")
    await _settle(state)

    (pending,) = cards.pending()
    reply = await registry.handle(state, f"/decline {pending.id} not me")
    assert reply == f"Request {pending.id} declined."
    await asyncio.gather(*state.background)

    (sent,) = protocol.replies
    assert not sent.payload.approved
    assert sent.payload.reason == "not me"
    history = await registry.handle(state, "/history")
    assert "User declined login" in (history or "")


@pytest.mark.asyncio
async def test_answer_commands_validate_input(state, cards) -> None:
    assert (await registry.handle(state, "/approve") or "").startswith("Usage")
    assert "No pending request" in (await registry.handle(state, "/approve missing") or "")
    assert (await registry.handle(state, "/pay lots") or "").startswith("Usage")


@pytest.mark.asyncio
async def test_answer_commands_in_headless_mode(state) -> None:
    reply = await registry.handle(state, "/pending")
    assert "headless" in (reply or "")


@pytest.mark.asyncio
async def test_wallet_and_relay_commands(state, relays) -> None:
    assert await registry.handle(state, "/wallet") == "Wallet (offline): 100000 sats"

    assert "disconnected" in (await registry.handle(state, "/relay wss://r off") or "")
    assert relays.default is False
