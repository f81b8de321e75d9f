"""Connectivity state machine, offline-mode coordination and notifications."""

from .alerter import Alerter
from .interface_watcher import InterfaceWatcher
from .notification_surface import AlertAction, AlertView, NotificationSurface, render
from .offline_mode import OfflineModeCoordinator
from .state import CheckTrigger, ConnectivityState, MonitorSnapshot, NetworkEvent
from .state_machine import ConnectivityMonitor, CycleResult, Subscription
from .status_broadcaster import StatusBroadcaster

__all__ = [
    "Alerter",
    "AlertAction",
    "AlertView",
    "CheckTrigger",
    "ConnectivityMonitor",
    "ConnectivityState",
    "CycleResult",
    "InterfaceWatcher",
    "MonitorSnapshot",
    "NetworkEvent",
    "NotificationSurface",
    "OfflineModeCoordinator",
    "StatusBroadcaster",
    "Subscription",
    "render",
]
