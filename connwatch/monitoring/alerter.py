"""Alerting for connectivity events."""
from __future__ import annotations

from typing import Optional

from ..utils.logger import logger
from ..utils.telegram_notifier import TelegramNotifier


class Alerter:
    """Handles dispatching of alerts to the configured channels."""

    def __init__(self, telegram: Optional[TelegramNotifier] = None):
        self.telegram = telegram

    @classmethod
    def from_config(cls, telegram_config) -> "Alerter":
        if not telegram_config.enabled:
            return cls()
        return cls(
            TelegramNotifier(
                bot_token=telegram_config.bot_token,
                chat_id=telegram_config.chat_id,
                enabled=True,
            )
        )

    def alert(self, title: str, message: str, level: str = "info") -> None:
        """Send an alert via configured channels."""

        # Always log
        log_msg = f"ALERT [{level.upper()}]: {title} - {message}"
        if level == "error" or level == "critical":
            logger.error(log_msg)
        elif level == "warning":
            logger.warning(log_msg)
        else:
            logger.info(log_msg)

        self._send_telegram(title, message, level)

    def _send_telegram(self, title: str, message: str, level: str) -> None:
        if self.telegram is None or not self.telegram.enabled:
            return
        text = TelegramNotifier.format_connectivity_alert(title, message, level)
        self.telegram.send_message_background(text)

    async def close(self) -> None:
        if self.telegram is not None:
            await self.telegram.close()
