"""In-process holder of the offline-mode flag."""
from __future__ import annotations

import threading

from ..utils.logger import logger
from .base import TradingService


class LocalTradingService(TradingService):
    """Keeps the offline-mode flag in memory for the CLI and dashboard."""

    def __init__(self, offline_mode: bool = False):
        self._offline_mode = offline_mode
        self._lock = threading.Lock()

    def is_in_offline_mode(self) -> bool:
        with self._lock:
            return self._offline_mode

    def set_offline_mode(self, enabled: bool) -> None:
        with self._lock:
            changed = self._offline_mode != enabled
            self._offline_mode = enabled
        if not changed:
            return
        if enabled:
            logger.warning("🔶 Offline mode enabled - trading will be simulated")
        else:
            logger.info("✅ Offline mode disabled - live trading restored")
