"""
Telegram Notification Module for connwatch
Sends connectivity alerts via Telegram Bot API
"""
from __future__ import annotations

import asyncio
import html
import threading
from datetime import datetime, timezone
from typing import Optional, Set

import aiohttp

from ..utils.logger import logger


class TelegramNotifier:
    """
    Async Telegram notifier for connectivity alerts.
    Ensures notifications never block the monitor.
    """

    def __init__(self, bot_token: str, chat_id: str, enabled: bool = True):
        """
        Initialize Telegram notifier.

        Args:
            bot_token: Telegram Bot API token
            chat_id: Telegram chat/channel ID to send messages to
            enabled: Whether notifications are enabled
        """
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.enabled = enabled
        self.api_url = f"https://api.telegram.org/bot{bot_token}/sendMessage"
        self._session: Optional[aiohttp.ClientSession] = None
        self._pending: Set[asyncio.Task] = set()

        if self.enabled:
            if not bot_token or bot_token == "your-bot-token-here":
                logger.warning("⚠️  Telegram notifications disabled: Invalid bot token")
                self.enabled = False
            elif not chat_id or chat_id == "your-chat-id-here":
                logger.warning("⚠️  Telegram notifications disabled: Invalid chat ID")
                self.enabled = False
            else:
                logger.info("✅ Telegram notifications enabled")

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=10)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self):
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def send_message(self, text: str, parse_mode: str = "HTML") -> bool:
        """
        Send a message via Telegram Bot API.

        Returns:
            True if message sent successfully, False otherwise
        """
        if not self.enabled:
            return False

        try:
            session = await self._get_session()
            payload = {
                "chat_id": self.chat_id,
                "text": text,
                "parse_mode": parse_mode,
                "disable_web_page_preview": True,
            }

            async with session.post(self.api_url, json=payload) as response:
                if response.status == 200:
                    logger.debug("✅ Telegram message sent successfully")
                    return True
                error_text = await response.text()
                logger.warning(f"⚠️  Telegram API error ({response.status}): {error_text}")
                return False

        except asyncio.TimeoutError:
            logger.warning("⚠️  Telegram message timeout (10s exceeded)")
            return False
        except Exception as e:  # noqa: BLE001
            logger.error(f"❌ Failed to send Telegram message: {e}")
            return False

    def send_message_background(self, text: str, parse_mode: str = "HTML"):
        """
        Send message in background without blocking.
        Fire-and-forget - errors are logged but don't raise exceptions.
        """
        if not self.enabled:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No running loop - send from a short-lived thread
            threading.Thread(
                target=self._send_in_new_loop,
                args=(text, parse_mode),
                daemon=True,
            ).start()
            return

        task = loop.create_task(self._send_message_safe(text, parse_mode))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _send_in_new_loop(self, text: str, parse_mode: str):
        """Run async send in a new event loop (for threading)."""
        loop = asyncio.new_event_loop()
        try:
            loop.run_until_complete(self._send_message_safe(text, parse_mode))
            loop.run_until_complete(self.close())
        finally:
            loop.close()

    async def _send_message_safe(self, text: str, parse_mode: str):
        """Wrapper that catches all exceptions to prevent background task crashes."""
        try:
            await self.send_message(text, parse_mode)
        except Exception as e:  # noqa: BLE001
            logger.error(f"❌ Background Telegram send failed: {e}")

    @staticmethod
    def format_connectivity_alert(
        title: str,
        message: str,
        level: str = "info",
        timestamp: Optional[datetime] = None,
    ) -> str:
        """
        Format a connectivity alert message.

        Args:
            title: Short headline (e.g. "Connectivity offline")
            message: Body text
            level: info, warning, error or critical
            timestamp: Alert time, defaults to now (UTC)

        Returns:
            Formatted HTML message
        """
        if timestamp is None:
            timestamp = datetime.now(timezone.utc)

        if level in ("error", "critical"):
            emoji = "🔴"
        elif level == "warning":
            emoji = "🟠"
        else:
            emoji = "🟢"

        lines = [
            f"{emoji} <b>{html.escape(title)}</b>",
            "",
            html.escape(message),
            f"Time: {timestamp.strftime('%Y-%m-%d %H:%M:%S %Z').strip()}",
        ]
        return "\n".join(lines)
