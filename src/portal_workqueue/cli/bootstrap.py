# src/portal_workqueue/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- registers concrete providers (storage, protocol, wallet, prompts, ...),
- builds AppState around them.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..connectors.console_connector import print_notification, print_pending_card
from ..connectors.offline import OfflineCurrencyConverter, OfflineProtocolClient, OfflineWallet
from ..core.providers import ProviderName, ProviderRegistry
from ..core.state import AppState
from ..models import RelayInfo
from ..providers.events import EventBus
from ..providers.notification import NotificationProvider
from ..providers.prompt_user import PromptUserWithNotification, PromptUserWithPendingCard
from ..providers.relay_status import RelayStatusesProvider
from ..providers.wallet import ActiveWalletProvider
from ..storage.activity_store import ActivityStore
from ..storage.sqlite_store import SqliteStore

# Registers every workflow task class.
from ..tasks import task_api  # noqa: F401

logger = logging.getLogger(__name__)

OFFLINE_RELAY_URL = "offline://local"


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.log_dir.mkdir(parents=True, exist_ok=True)


def build_providers(settings) -> ProviderRegistry:
    """Offline providers: nothing leaves the process, state lives in one SQLite file."""
    providers = ProviderRegistry()

    providers.register(SqliteStore(settings.db_path), ProviderName.STORAGE)
    providers.register(ActivityStore(settings.db_path), ProviderName.ACTIVITIES)
    providers.register(OfflineProtocolClient(), ProviderName.PROTOCOL)
    providers.register(
        ActiveWalletProvider(OfflineWallet(balance_sats=settings.offline_wallet_sats)),
        ProviderName.ACTIVE_WALLET,
    )
    providers.register(
        RelayStatusesProvider([RelayInfo(url=OFFLINE_RELAY_URL, connected=True)]),
        ProviderName.RELAY_STATUS,
    )

    notifier = NotificationProvider(print_notification)
    providers.register(notifier, ProviderName.NOTIFIER)

    if settings.headless:
        providers.register(PromptUserWithNotification(notifier), ProviderName.PROMPT_USER)
    else:
        providers.register(
            PromptUserWithPendingCard(on_new=print_pending_card), ProviderName.PROMPT_USER
        )

    providers.register(EventBus(), ProviderName.EVENTS)
    providers.register(OfflineCurrencyConverter(), ProviderName.CURRENCY)
    return providers


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    providers = build_providers(settings)
    logger.info("Providers registered: %s", ", ".join(providers.names()))
    return AppState(settings=settings, providers=providers)
