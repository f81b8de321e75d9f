"""Automatic offline-mode activation after repeated failed manual checks."""
from __future__ import annotations

from typing import Optional

from ..services.base import TradingService
from ..utils.logger import logger


class OfflineModeCoordinator:
    """Hysteresis guard between manual check failures and offline mode.

    The counter tracks failed manual checks since the last success. A failure
    arriving while the counter already stands at ``threshold`` enables offline
    mode, at most once per failure streak. Offline mode is never turned off
    here; going live again is a user decision.
    """

    def __init__(self, trading_service: Optional[TradingService], threshold: int = 2):
        self.trading_service = trading_service
        self.threshold = max(0, threshold)
        self._attempts = 0
        self._activated_in_streak = False

    @property
    def attempt_counter(self) -> int:
        return self._attempts

    def is_offline_mode(self) -> bool:
        if self.trading_service is None:
            return False
        try:
            return bool(self.trading_service.is_in_offline_mode())
        except Exception as exc:  # noqa: BLE001
            logger.warning(f"⚠️  Could not read offline mode flag: {exc}")
            return False

    def on_manual_check_result(self, reachable: bool) -> bool:
        """Record a manual check outcome.

        Returns:
            True if this call enabled offline mode.
        """
        if reachable:
            if self._attempts:
                logger.info(f"Manual check succeeded; clearing {self._attempts} failed attempt(s)")
            self._attempts = 0
            self._activated_in_streak = False
            return False

        activated = False
        if self._attempts >= self.threshold and not self._activated_in_streak:
            activated = self._enable_offline_mode()
        self._attempts += 1
        logger.info(f"Manual check failed ({self._attempts} consecutive)")
        return activated

    def _enable_offline_mode(self) -> bool:
        if self.trading_service is None:
            return False
        if self.is_offline_mode():
            # Already simulating; nothing to switch in this streak
            self._activated_in_streak = True
            return False
        try:
            self.trading_service.set_offline_mode(True)
        except Exception as exc:  # noqa: BLE001
            logger.error(f"❌ Failed to enable offline mode: {exc}")
            return False
        self._activated_in_streak = True
        logger.warning(
            f"🔶 {self._attempts + 1} consecutive manual checks failed - offline mode enabled"
        )
        return True
