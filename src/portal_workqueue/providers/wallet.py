# src/portal_workqueue/providers/wallet.py

from __future__ import annotations

from ..core.ports import Wallet


class ActiveWalletProvider:
    """
    The wallet payments go through, or None when the user has not linked one.

    Swap wallets by registering a new provider: tasks built afterwards see it,
    tasks already constructed keep the one they resolved.
    """

    def __init__(self, wallet: Wallet | None = None) -> None:
        self.wallet = wallet

    def get_wallet(self) -> Wallet | None:
        return self.wallet
