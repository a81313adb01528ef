# src/portal_workqueue/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, drains whatever a previous run left
in the queue, then either runs the console REPL or waits for a signal while
background workflows finish.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.state import AppState
from ..logging_setup import level_from_name, setup_logging
from ..tasks.task_api import startup

logger = logging.getLogger(__name__)

SHUTDOWN_GRACE_SECONDS = 10.0


async def _shutdown(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    pending = [t for t in state.background if not t.done()]
    if pending:
        logger.info("Waiting for %d background workflow(s)...", len(pending))
        _done, still_running = await asyncio.wait(pending, timeout=SHUTDOWN_GRACE_SECONDS)
        for t in still_running:
            t.cancel()
        if still_running:
            # Their queue records stay behind and run on the next start.
            logger.info("Cancelled %d unfinished workflow(s).", len(still_running))
            await asyncio.gather(*still_running, return_exceptions=True)

    # Stores use short-lived sqlite connections per call; close() is a no-op kept for symmetry.
    for name in ("storage", "activities"):
        try:
            getattr(state.providers, name).close()
        except Exception:
            logger.debug("%s close failed.", name, exc_info=True)


async def _run(state: AppState) -> None:
    if state.settings.drain_on_startup:
        try:
            report = await startup(state)
            logger.info(
                "Startup drain processed=%d succeeded=%d failed=%d",
                report.processed,
                report.succeeded,
                report.failed,
            )
        except Exception:
            logger.exception("Startup drain failed.")

    try:
        if state.settings.console_enabled:
            await run_console_loop(state)
        else:
            stop = asyncio.Event()
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                # Some platforms may not support add_signal_handler.
                with contextlib.suppress(NotImplementedError, RuntimeError):
                    loop.add_signal_handler(sig, stop.set)
            logger.info("Console disabled. Running headless. Press Ctrl+C to stop.")
            await stop.wait()
    finally:
        await _shutdown(state)


def main() -> None:
    settings = get_settings()

    console_level = level_from_name(getattr(settings, "log_level", "INFO"))
    setup_logging(log_dir=settings.log_dir, console_level=console_level)

    logger.info("Starting %s...", getattr(settings, "app_name", "portal"))

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)

    try:
        asyncio.run(_run(state))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    logger.info("Bye.")


if __name__ == "__main__":
    main()
