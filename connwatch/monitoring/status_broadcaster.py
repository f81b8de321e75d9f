"""Websocket / callback broadcasting helpers."""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional

from ..utils.logger import logger
from .state import MonitorSnapshot

StatusCallback = Callable[[Dict[str, Any]], Awaitable[None]]


class StatusBroadcaster:
    """Emits connectivity snapshots to an external async listener."""

    def __init__(self, monitor, on_status_update: Optional[StatusCallback] = None):
        self.monitor = monitor
        self.on_status_update = on_status_update
        self._subscription = None
        self._pending = set()

    def attach(self) -> None:
        if self._subscription is None:
            self._subscription = self.monitor.subscribe(self._on_snapshot)

    def detach(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None

    async def broadcast_status(self, snapshot: Optional[MonitorSnapshot] = None):
        if not self.on_status_update:
            return
        snapshot = snapshot or self.monitor.snapshot
        await self.on_status_update({"type": "connectivity", "data": snapshot.to_dict()})

    def _on_snapshot(self, snapshot: MonitorSnapshot) -> None:
        if not self.on_status_update:
            return
        task = asyncio.get_running_loop().create_task(self._broadcast_safe(snapshot))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _broadcast_safe(self, snapshot: MonitorSnapshot) -> None:
        try:
            await self.broadcast_status(snapshot)
        except Exception as e:  # noqa: BLE001
            logger.error(f"❌ Connectivity broadcast failed: {e}")
