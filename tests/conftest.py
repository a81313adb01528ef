# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from portal_workqueue.connectors.offline import (
    OfflineCurrencyConverter,
    OfflineProtocolClient,
    OfflineWallet,
)
from portal_workqueue.core.providers import ProviderName, ProviderRegistry
from portal_workqueue.core.state import AppState
from portal_workqueue.providers.notification import NotificationProvider
from portal_workqueue.providers.wallet import ActiveWalletProvider
from portal_workqueue.storage.activity_store import ActivityStore
from portal_workqueue.storage.sqlite_store import SqliteStore

# Registers every workflow task class.
from portal_workqueue.tasks import task_api  # noqa: F401

from .fakes import EventRecorder, FakeClock, FakePromptUser, FakeRelayStatus

T0 = 1_700_000_000.0


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the workflows.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="portal-test",
        data_dir=tmp_path,
        db_path=tmp_path / "portal.sqlite3",
        log_dir=tmp_path,
        preferred_currency="USD",
        offline_wallet_sats=100_000,
        console_enabled=False,
        drain_on_startup=False,
        headless=False,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(T0)


@pytest.fixture()
def storage(settings: SimpleNamespace) -> SqliteStore:
    return SqliteStore(settings.db_path)


@pytest.fixture()
def activities(settings: SimpleNamespace) -> ActivityStore:
    return ActivityStore(settings.db_path)


@pytest.fixture()
def protocol() -> OfflineProtocolClient:
    return OfflineProtocolClient()


@pytest.fixture()
def wallet() -> OfflineWallet:
    return OfflineWallet(balance_sats=100_000)


@pytest.fixture()
def relays() -> FakeRelayStatus:
    return FakeRelayStatus()


@pytest.fixture()
def prompt_user() -> FakePromptUser:
    return FakePromptUser()


@pytest.fixture()
def events() -> EventRecorder:
    return EventRecorder()


@pytest.fixture()
def notifications() -> list:
    return []


@pytest.fixture()
def providers(
    storage: SqliteStore,
    activities: ActivityStore,
    protocol: OfflineProtocolClient,
    wallet: OfflineWallet,
    relays: FakeRelayStatus,
    prompt_user: FakePromptUser,
    events: EventRecorder,
    notifications: list,
) -> ProviderRegistry:
    """
    Provider registry wired with deterministic fakes.

    NOTE: We keep real SQLite stores here (SqliteStore/ActivityStore) because
    their correctness is part of what we want to test.
    """
    reg = ProviderRegistry()
    reg.register(storage, ProviderName.STORAGE)
    reg.register(activities, ProviderName.ACTIVITIES)
    reg.register(protocol, ProviderName.PROTOCOL)
    reg.register(ActiveWalletProvider(wallet), ProviderName.ACTIVE_WALLET)
    reg.register(relays, ProviderName.RELAY_STATUS)
    reg.register(NotificationProvider(notifications.append), ProviderName.NOTIFIER)
    reg.register(prompt_user, ProviderName.PROMPT_USER)
    reg.register(events, ProviderName.EVENTS)
    reg.register(OfflineCurrencyConverter(), ProviderName.CURRENCY)
    return reg


@pytest.fixture()
def state(settings: SimpleNamespace, providers: ProviderRegistry, clock: FakeClock) -> AppState:
    return AppState(settings=settings, providers=providers, clock=clock)
