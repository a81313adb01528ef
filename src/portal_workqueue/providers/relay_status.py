# src/portal_workqueue/providers/relay_status.py

from __future__ import annotations

from collections.abc import Iterable

from ..models import RelayInfo


class RelayStatusesProvider:
    """Connectivity snapshot: connected if any relay is."""

    def __init__(self, relays: Iterable[RelayInfo] = ()) -> None:
        self.relays: list[RelayInfo] = list(relays)

    def are_relays_connected(self) -> bool:
        return any(r.connected for r in self.relays)

    def set_status(self, url: str, connected: bool) -> None:
        others = [r for r in self.relays if r.url != url]
        self.relays = [*others, RelayInfo(url=url, connected=connected)]
