# src/portal_workqueue/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..models import NotificationContent, PendingRequest

logger = logging.getLogger(__name__)

PROMPT = ">>> "


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


def print_pending_card(request: PendingRequest) -> None:
    """Announce a new pending request (hooked into PromptUserWithPendingCard)."""
    _print_ts(
        f"[PENDING] {request.kind} request id={request.id}. "
        f"Answer with /approve {request.id} or /decline {request.id} [reason]."
    )


def print_notification(content: NotificationContent) -> None:
    _print_ts(f"[NOTIFY] {content.title}: {content.body}")


async def run_console_loop(state: AppState) -> None:
    """
    Read commands until /exit or EOF.

    ``input()`` runs in a worker thread so queued and background workflows keep
    running on the loop while the prompt waits.
    """
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Use /help for commands. Use /exit to quit.\n")

    while True:
        try:
            user_input = (await asyncio.to_thread(input, PROMPT)).strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            reply = await command_registry.handle(state, user_input)
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        if reply is None:
            reply = "Commands start with '/'. Use /help to list available commands."
        _print_ts(reply)

    logger.info("Console connector finished.")
