# tests/test_bootstrap.py

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from portal_workqueue.cli.bootstrap import create_initial_state
from portal_workqueue.config import Settings
from portal_workqueue.core.providers import ProviderName
from portal_workqueue.logging_setup import level_from_name, setup_logging
from portal_workqueue.providers.prompt_user import (
    PromptUserWithNotification,
    PromptUserWithPendingCard,
)


def test_settings_from_env(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("PORTAL_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("PORTAL_PREFERRED_CURRENCY", "eur")
    monkeypatch.setenv("PORTAL_OFFLINE_WALLET_SATS", "not-a-number")
    monkeypatch.setenv("PORTAL_CONSOLE_ENABLED", "no")
    monkeypatch.delenv("PORTAL_HEADLESS", raising=False)
    monkeypatch.delenv("PORTAL_DB_PATH", raising=False)

    s = Settings.from_env()

    assert s.data_dir == tmp_path
    assert s.db_path == tmp_path / "portal.sqlite3"
    assert s.preferred_currency == "EUR"
    assert s.offline_wallet_sats == 100_000
    assert s.console_enabled is False
    assert s.headless is True


@pytest.mark.parametrize(
    ("headless", "expected"),
    [(False, PromptUserWithPendingCard), (True, PromptUserWithNotification)],
)
def test_create_initial_state_registers_every_provider(settings, headless, expected) -> None:
    settings.headless = headless
    state = create_initial_state(settings=settings)

    assert set(state.providers.names()) == {str(n) for n in ProviderName}
    assert isinstance(state.providers.prompt_user, expected)
    assert state.providers.relay_status.are_relays_connected()
    assert state.providers.active_wallet.get_wallet() is not None


@pytest.mark.asyncio
async def test_offline_state_runs_a_headless_workflow(settings) -> None:
    from portal_workqueue.models import AuthChallengeEvent
    from portal_workqueue.tasks.task_api import handle_incoming_request

    settings.headless = True
    state = create_initial_state(settings=settings)
    event = AuthChallengeEvent(
        event_id="e1", service_key="svc", expires_at=int(state.clock.now()) + 60
    )

    await handle_incoming_request(state, event)

    assert state.providers.protocol.replies == []
    assert state.providers.storage.queue_count() == 0


def test_setup_logging_writes_to_file(tmp_path: Path) -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        log_file = setup_logging(log_dir=tmp_path, console_level=logging.WARNING)
        logging.getLogger("portal_workqueue.test").info("hello file")
        for h in root.handlers:
            h.flush()
        assert log_file.exists()
        assert "hello file" in log_file.read_text("utf-8")
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
            h.close()
        for h in saved_handlers:
            root.addHandler(h)
        root.setLevel(saved_level)
        logging.captureWarnings(False)


def test_level_from_name() -> None:
    assert level_from_name("debug") == logging.DEBUG
    assert level_from_name("nonsense") == logging.INFO
    assert level_from_name(None, default=logging.ERROR) == logging.ERROR
