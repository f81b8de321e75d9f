"""OS network-change notifications derived from interface link state."""
from __future__ import annotations

import asyncio
from typing import Callable, Dict, List, Optional

import psutil

from ..utils.logger import logger
from .state import NetworkEvent

NetworkCallback = Callable[[NetworkEvent], None]


class _WatcherSubscription:
    def __init__(self, watcher: "InterfaceWatcher", callback: NetworkCallback):
        self._watcher = watcher
        self._callback = callback

    def close(self) -> None:
        if self._callback in self._watcher._callbacks:
            self._watcher._callbacks.remove(self._callback)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class InterfaceWatcher:
    """Polls ``psutil.net_if_stats()`` and reports link edges.

    The host counts as linked while any non-loopback interface is up. Edges are
    only hints; the monitor confirms them with a probe. The first poll sets the
    baseline and emits nothing.
    """

    def __init__(self, poll_seconds: float = 2.0):
        self.poll_seconds = poll_seconds
        self._callbacks: List[NetworkCallback] = []
        self._linked: Optional[bool] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def linked(self) -> Optional[bool]:
        return self._linked

    def subscribe(self, callback: NetworkCallback) -> _WatcherSubscription:
        self._callbacks.append(callback)
        return _WatcherSubscription(self, callback)

    async def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self._poll_loop(), name="interface-watcher")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    def poll(self) -> Optional[NetworkEvent]:
        """Read link state once and return the edge it represents, if any."""
        try:
            stats: Dict[str, object] = psutil.net_if_stats()
        except (OSError, RuntimeError) as exc:
            logger.debug(f"Interface stats unavailable: {exc}")
            return None

        linked = any(
            getattr(stat, "isup", False)
            for name, stat in stats.items()
            if not _is_loopback(name)
        )
        previous, self._linked = self._linked, linked
        if previous is None or previous == linked:
            return None

        event = NetworkEvent.WENT_ONLINE if linked else NetworkEvent.WENT_OFFLINE
        logger.info(f"Network interfaces went {'up' if linked else 'down'}")
        for callback in list(self._callbacks):
            try:
                callback(event)
            except Exception:  # noqa: BLE001
                logger.exception("Network change subscriber failed")
        return event

    async def _poll_loop(self) -> None:
        while True:
            self.poll()
            await asyncio.sleep(self.poll_seconds)


def _is_loopback(name: str) -> bool:
    lowered = name.lower()
    return lowered == "lo" or lowered.startswith("lo0") or "loopback" in lowered
