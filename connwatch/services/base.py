"""Interfaces of the collaborators the monitor reaches out to."""
from __future__ import annotations

from abc import ABC, abstractmethod


class BackendClient(ABC):
    """Trading backend client, used only to confirm backend reachability."""

    @abstractmethod
    async def test_connection(self) -> bool:
        """Return True if the trading backend answers."""


class TradingService(ABC):
    """Owner of the offline-mode (simulated trading) flag."""

    @abstractmethod
    def is_in_offline_mode(self) -> bool:
        """Return True while live backend calls are replaced by simulation."""

    @abstractmethod
    def set_offline_mode(self, enabled: bool) -> None:
        """Switch offline mode on or off."""
