# src/portal_workqueue/core/providers.py

"""
Named collaborator registry.

Tasks declare the providers they need by name; the registry resolves those
names when a task is constructed. One registry is built at the composition
root (cli/bootstrap.py) and carried on AppState.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from enum import StrEnum
from typing import Any, cast

from ..errors import ProviderNotFoundError
from .ports import (
    ActivityRepo,
    CurrencyConverter,
    EventEmitter,
    NotificationSink,
    PromptUser,
    ProtocolClient,
    RelayStatus,
    Storage,
)

logger = logging.getLogger(__name__)


class ProviderName(StrEnum):
    STORAGE = "Storage"
    ACTIVITIES = "ActivityRepo"
    PROTOCOL = "ProtocolClient"
    ACTIVE_WALLET = "ActiveWalletProvider"
    RELAY_STATUS = "RelayStatusesProvider"
    NOTIFIER = "NotificationProvider"
    PROMPT_USER = "PromptUserProvider"
    EVENTS = "EventEmitter"
    CURRENCY = "CurrencyConverter"


class ProviderRegistry:
    """Name -> instance bindings. Last registration for a name wins."""

    def __init__(self) -> None:
        self._providers: dict[str, Any] = {}

    def register(self, instance: Any, name: str | None = None) -> None:
        key = str(name) if name else type(instance).__name__
        previous = self._providers.get(key)
        self._providers[key] = instance
        if previous is not None and previous is not instance:
            logger.info("Provider replaced name=%s type=%s", key, type(instance).__name__)
        else:
            logger.debug("Provider registered name=%s type=%s", key, type(instance).__name__)

    def unregister(self, name: str) -> None:
        self._providers.pop(str(name), None)

    def get(self, name: str) -> Any | None:
        return self._providers.get(str(name))

    def require(self, name: str) -> Any:
        try:
            return self._providers[str(name)]
        except KeyError:
            raise ProviderNotFoundError(str(name)) from None

    def resolve(self, names: Iterable[str]) -> tuple[Any, ...]:
        """Resolve several names in order; the first missing one raises."""
        return tuple(self.require(n) for n in names)

    def names(self) -> list[str]:
        return sorted(self._providers)

    def __contains__(self, name: object) -> bool:
        return str(name) in self._providers

    # ---- typed accessors ----

    @property
    def storage(self) -> Storage:
        return cast(Storage, self.require(ProviderName.STORAGE))

    @property
    def activities(self) -> ActivityRepo:
        return cast(ActivityRepo, self.require(ProviderName.ACTIVITIES))

    @property
    def protocol(self) -> ProtocolClient:
        return cast(ProtocolClient, self.require(ProviderName.PROTOCOL))

    @property
    def active_wallet(self) -> Any:
        # ActiveWalletProvider (providers/wallet.py); kept untyped to avoid an import cycle.
        return self.require(ProviderName.ACTIVE_WALLET)

    @property
    def relay_status(self) -> RelayStatus:
        return cast(RelayStatus, self.require(ProviderName.RELAY_STATUS))

    @property
    def notifier(self) -> NotificationSink:
        return cast(NotificationSink, self.require(ProviderName.NOTIFIER))

    @property
    def prompt_user(self) -> PromptUser:
        return cast(PromptUser, self.require(ProviderName.PROMPT_USER))

    @property
    def events(self) -> EventEmitter:
        return cast(EventEmitter, self.require(ProviderName.EVENTS))

    @property
    def currency(self) -> CurrencyConverter:
        return cast(CurrencyConverter, self.require(ProviderName.CURRENCY))
