# src/portal_workqueue/cli/commands.py

from __future__ import annotations

import inspect
import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime

from ..connectors.offline import make_invoice
from ..core.state import AppState
from ..models import (
    AuthChallengeEvent,
    Currency,
    IncomingRequest,
    RecurrenceInfo,
    RecurringPaymentContent,
    RecurringPaymentRequest,
    SinglePaymentContent,
    SinglePaymentRequest,
)
from ..providers.prompt_user import PromptUserWithPendingCard
from ..tasks.task_api import run_maintenance, spawn_incoming_request
from ..tasks.task_drainer import drain_queue_once, queue_for
from ..workflows.approval import build_decision

CommandHandler = Callable[[AppState, list[str]], "str | Awaitable[str]"]

logger = logging.getLogger(__name__)

# Demo requests created from the console expire after this many seconds.
DEMO_REQUEST_TTL = 5 * 60
DEMO_SERVICE_KEY = "npub-demo-service"


class CommandRegistry:
    """Slash-command registry used by the console connector (/help, /drain, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(self, state: AppState, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        reply = handler(state, args)
        if inspect.isawaitable(reply):
            reply = await reply
        return reply

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _ts_local(ts: float) -> str:
    return datetime.fromtimestamp(ts).astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _pending_cards(state: AppState) -> PromptUserWithPendingCard | None:
    prompt_user = state.providers.prompt_user
    return prompt_user if isinstance(prompt_user, PromptUserWithPendingCard) else None


def _spawn(state: AppState, request: IncomingRequest, label: str) -> str:
    spawn_incoming_request(state, request)
    return f"{label} submitted event_id={request.event_id}. Use /pending to answer it."


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    relays = state.providers.relay_status.are_relays_connected()
    cards = _pending_cards(state)
    prompts = f"{len(cards)} pending" if cards is not None else "headless (notifications)"
    return (
        "Status:\n"
        f"  Providers: {', '.join(state.providers.names())}\n"
        f"  Relays connected: {'yes' if relays else 'no'}\n"
        f"  Queued tasks: {queue_for(state).pending_count()}\n"
        f"  In-flight tasks: {len(state.inflight)}\n"
        f"  Background workflows: {len(state.background)}\n"
        f"  Prompts: {prompts}"
    )


async def cmd_drain(state: AppState, args: list[str]) -> str:
    report = await drain_queue_once(state)
    return (
        f"Drained {report.processed} task(s): "
        f"{report.succeeded} succeeded, {report.failed} failed."
    )


def cmd_cleanup(state: AppState, args: list[str]) -> str:
    report = run_maintenance(state)
    return (
        f"Removed {report.cache_removed} expired cache entr(y/ies) "
        f"and {report.queue_removed} expired queued task(s)."
    )


def cmd_queue(state: AppState, args: list[str]) -> str:
    records = queue_for(state).pending(limit=20)
    if not records:
        return "Queue is empty."
    lines = ["Queued tasks (next first):"]
    for r in records:
        expires = "never" if r.expires_at is None else _ts_local(r.expires_at)
        lines.append(
            f"  #{r.id} {r.task_name} priority={r.priority} "
            f"added={_ts_local(r.added_at)} expires={expires}"
        )
    return "\n".join(lines)


def cmd_pending(state: AppState, args: list[str]) -> str:
    cards = _pending_cards(state)
    if cards is None:
        return "Prompts are delivered as notifications (headless mode)."
    pending = cards.pending()
    if not pending:
        return "No pending requests."
    lines = ["Pending requests:"]
    for p in pending:
        lines.append(f"  {p.id} [{p.kind}] since {_ts_local(p.created_at)}")
    lines.append("Answer with /approve <id> or /decline <id> [reason].")
    return "\n".join(lines)


def _answer(state: AppState, args: list[str], approved: bool) -> str:
    verb = "approve" if approved else "decline"
    if not args:
        return f"Usage: /{verb} <id>" + ("" if approved else " [reason]")

    cards = _pending_cards(state)
    if cards is None:
        return "Prompts are delivered as notifications (headless mode)."

    request_id = args[0]
    pending = cards.get(request_id)
    if pending is None:
        return f"No pending request with id={request_id}."

    reason = " ".join(args[1:]) or None
    cards.resolve(request_id, build_decision(pending, approved, reason))
    return f"Request {request_id} {'approved' if approved else 'declined'}."


def cmd_approve(state: AppState, args: list[str]) -> str:
    return _answer(state, args, approved=True)


def cmd_decline(state: AppState, args: list[str]) -> str:
    return _answer(state, args, approved=False)


def cmd_auth(state: AppState, args: list[str]) -> str:
    """
    /auth [service_key]  -> simulate an incoming login challenge
    """
    event = AuthChallengeEvent(
        event_id=uuid.uuid4().hex,
        service_key=args[0] if args else DEMO_SERVICE_KEY,
        expires_at=int(state.clock.now()) + DEMO_REQUEST_TTL,
    )
    return _spawn(state, event, "Login request")


def cmd_pay(state: AppState, args: list[str]) -> str:
    """
    /pay <sats> [service_key]  -> simulate a one-off payment request
    """
    if not args or not args[0].isdigit():
        return "Usage: /pay <sats> [service_key]"

    amount_msat = int(args[0]) * 1000
    request = SinglePaymentRequest(
        event_id=uuid.uuid4().hex,
        service_key=args[1] if len(args) > 1 else DEMO_SERVICE_KEY,
        expires_at=int(state.clock.now()) + DEMO_REQUEST_TTL,
        content=SinglePaymentContent(
            amount=amount_msat,
            currency=Currency.millisats(),
            invoice=make_invoice(amount_msat, memo="console"),
            description="Console payment",
        ),
    )
    return _spawn(state, request, "Payment request")


def cmd_subscribe(state: AppState, args: list[str]) -> str:
    """
    /subscribe <sats> <calendar> [service_key]  -> simulate a subscription request
    """
    if len(args) < 2 or not args[0].isdigit():
        return "Usage: /subscribe <sats> <daily|weekly|monthly|quarterly|yearly> [service_key]"

    now = int(state.clock.now())
    request = RecurringPaymentRequest(
        event_id=uuid.uuid4().hex,
        service_key=args[2] if len(args) > 2 else DEMO_SERVICE_KEY,
        expires_at=now + DEMO_REQUEST_TTL,
        content=RecurringPaymentContent(
            amount=int(args[0]) * 1000,
            currency=Currency.millisats(),
            recurrence=RecurrenceInfo(calendar=args[1].lower(), first_payment_due=now),
            description="Console subscription",
        ),
    )
    return _spawn(state, request, "Subscription request")


async def cmd_wallet(state: AppState, args: list[str]) -> str:
    wallet = state.providers.active_wallet.get_wallet()
    if wallet is None:
        return "No wallet linked."
    info = await wallet.get_wallet_info()
    alias = f" ({info.alias})" if info.alias else ""
    return f"Wallet{alias}: {info.balance_sats} sats"


def cmd_history(state: AppState, args: list[str]) -> str:
    limit = int(args[0]) if args and args[0].isdigit() else 10
    activities = state.providers.activities.list_activities(limit=limit)
    if not activities:
        return "No activity yet."
    lines = ["Recent activity:"]
    for a in activities:
        amount = "" if a.amount is None else f" {a.amount:g} {a.currency or ''}".rstrip()
        lines.append(
            f"  {_ts_local(a.date)} [{a.type}/{a.status}] {a.service_name}: {a.detail}{amount}"
        )
    return "\n".join(lines)


def cmd_relay(state: AppState, args: list[str]) -> str:
    """
    /relay               -> list relays
    /relay <url> on|off  -> flip a relay's connection flag
    """
    relay_status = state.providers.relay_status
    if not args:
        relays = getattr(relay_status, "relays", [])
        if not relays:
            return "No relays configured."
        return "\n".join(
            f"  {r.url}: {'connected' if r.connected else 'disconnected'}" for r in relays
        )

    if len(args) < 2 or args[1].lower() not in ("on", "off"):
        return "Usage: /relay <url> on|off"

    connected = args[1].lower() == "on"
    relay_status.set_status(args[0], connected)
    logger.debug("Relay %s set connected=%s", args[0], connected)
    return f"Relay {args[0]} is now {'connected' if connected else 'disconnected'}."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show providers, queue and prompt state.")
registry.register("drain", cmd_drain, help_text="Run every queued task once.")
registry.register("cleanup", cmd_cleanup, help_text="Drop expired cache entries and queued tasks.")
registry.register("queue", cmd_queue, help_text="List queued tasks.")
registry.register("pending", cmd_pending, help_text="List requests waiting for your answer.")
registry.register("approve", cmd_approve, help_text="Approve a pending request: /approve <id>.")
registry.register(
    "decline", cmd_decline, help_text="Decline a pending request: /decline <id> [reason]."
)
registry.register("auth", cmd_auth, help_text="Simulate a login request: /auth [service_key].")
registry.register("pay", cmd_pay, help_text="Simulate a payment request: /pay <sats> [service_key].")
registry.register(
    "subscribe",
    cmd_subscribe,
    help_text="Simulate a subscription request: /subscribe <sats> <calendar> [service_key].",
)
registry.register("wallet", cmd_wallet, help_text="Show the active wallet balance.")
registry.register("history", cmd_history, help_text="Show recent activity: /history [n].")
registry.register("relay", cmd_relay, help_text="List relays or set one: /relay <url> on|off.")
