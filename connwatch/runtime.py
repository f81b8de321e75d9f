"""Wires settings into a running monitor and its collaborators."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .config import Settings
from .monitoring.alerter import Alerter
from .monitoring.interface_watcher import InterfaceWatcher
from .monitoring.notification_surface import NotificationSurface
from .monitoring.state_machine import ConnectivityMonitor
from .probes.base import Endpoint
from .probes.chain import ProbeChainRunner
from .probes.http_probe import HttpProbeExecutor
from .services.base import TradingService
from .services.http_backend import HttpBackendClient
from .services.trading_flag import LocalTradingService
from .utils.logger import logger


@dataclass
class MonitorRuntime:
    """Everything one process needs for connectivity monitoring."""

    settings: Settings
    executor: HttpProbeExecutor
    backend_client: HttpBackendClient
    trading_service: TradingService
    monitor: ConnectivityMonitor
    surface: NotificationSurface
    alerter: Alerter

    async def start(self) -> None:
        self.surface.attach()
        await self.monitor.start()

    async def close(self) -> None:
        await self.monitor.stop()
        self.surface.detach()
        await self.executor.close()
        await self.backend_client.close()
        await self.alerter.close()
        logger.debug("Connectivity runtime closed")


def build_runtime(settings: Settings, trading_service: Optional[TradingService] = None) -> MonitorRuntime:
    """Build (but do not start) the monitor described by ``settings``."""
    settings.validate()
    endpoints = [Endpoint.from_config(cfg) for cfg in settings.probes.endpoints]
    executor = HttpProbeExecutor(user_agent=settings.probes.user_agent)
    backend_client = HttpBackendClient(
        settings.backend.ping_url,
        timeout_seconds=settings.backend.timeout_seconds,
    )
    trading_service = trading_service or LocalTradingService()

    watcher = None
    if settings.monitor.watch_interfaces:
        watcher = InterfaceWatcher(poll_seconds=settings.monitor.interface_poll_seconds)

    monitor = ConnectivityMonitor(
        ProbeChainRunner(executor),
        endpoints,
        config=settings.monitor,
        backend_client=backend_client,
        trading_service=trading_service,
        interface_watcher=watcher,
    )
    alerter = Alerter.from_config(settings.telegram)
    surface = NotificationSurface(
        monitor,
        alerter=alerter,
        notify_on_recovery=settings.telegram.notify_on_recovery,
    )
    return MonitorRuntime(
        settings=settings,
        executor=executor,
        backend_client=backend_client,
        trading_service=trading_service,
        monitor=monitor,
        surface=surface,
        alerter=alerter,
    )
