# src/portal_workqueue/workflows/wallet.py

from __future__ import annotations

from typing import Any

from ..core.providers import ProviderName
from ..models import WalletInfo
from ..tasks.task_base import Task, task_registry
from ..tasks.task_models import DAY_SECONDS
from .relays import WaitForRelaysConnectedTask


@task_registry.register
class GetWalletInfoTask(Task[WalletInfo | None]):
    """Balance of the active wallet, or None without one. Cached for a day."""

    requires = (ProviderName.ACTIVE_WALLET,)
    ttl = DAY_SECONDS

    async def execute(self, providers: tuple[Any, ...]) -> WalletInfo | None:
        (active_wallet,) = providers
        await WaitForRelaysConnectedTask(self.state).run()
        wallet = active_wallet.get_wallet()
        if wallet is None:
            return None
        return await wallet.get_wallet_info()

    def should_cache(self, result: WalletInfo | None) -> bool:
        # A wallet linked later must be seen right away.
        return result is not None

    @classmethod
    def decode_result(cls, raw: Any) -> WalletInfo | None:
        return None if raw is None else WalletInfo.from_dict(raw)
