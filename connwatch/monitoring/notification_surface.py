"""Renders monitor snapshots for people and exposes the alert actions."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from ..probes.base import ConnectivityHint
from ..utils.logger import logger
from .alerter import Alerter
from .state import ConnectivityState, MonitorSnapshot

UNSTABLE_MESSAGE = "Network connectivity issues detected. Your connection appears unstable."
OFFLINE_MESSAGE = "Network connectivity issue detected. Please check your internet connection."
BACKEND_HINT = "The trading backend is unreachable; check backend configuration (API keys, proxy, region)."
OFFLINE_MODE_MESSAGE = "Offline mode enabled. The application will use simulated trading."
BYPASS_MESSAGE = "Connection checks bypassed. Connectivity is reported as online."


@dataclass(frozen=True)
class AlertAction:
    key: str
    label: str
    enabled: bool = True


@dataclass(frozen=True)
class AlertView:
    visible: bool
    level: str
    headline: str
    detail: str
    attempt_counter: int
    state: ConnectivityState
    is_checking: bool = False
    offline_mode: bool = False
    actions: Tuple[AlertAction, ...] = field(default_factory=tuple)
    # Snapshot this view was rendered from
    snapshot: Optional[MonitorSnapshot] = field(default=None, compare=False, repr=False)

    def action_keys(self) -> Tuple[str, ...]:
        return tuple(action.key for action in self.actions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "visible": self.visible,
            "level": self.level,
            "headline": self.headline,
            "detail": self.detail,
            "attempt_counter": self.attempt_counter,
            "state": self.state.value,
            "is_checking": self.is_checking,
            "offline_mode": self.offline_mode,
            "actions": [
                {"key": action.key, "label": action.label, "enabled": action.enabled}
                for action in self.actions
            ],
        }


def render(snapshot: MonitorSnapshot) -> AlertView:
    """Turn a snapshot into the alert a person would see."""
    state = snapshot.state
    if state is ConnectivityState.OFFLINE:
        level, headline, detail = "error", "Offline", OFFLINE_MESSAGE
    elif state is ConnectivityState.DEGRADED:
        level, headline, detail = "warning", "Connection unstable", UNSTABLE_MESSAGE
    elif state is ConnectivityState.ONLINE:
        level, headline = "info", "Connected"
        if snapshot.hint is ConnectivityHint.BYPASSED:
            detail = BYPASS_MESSAGE
        else:
            detail = "Your internet connection is working."
    elif state is ConnectivityState.CHECKING:
        level, headline, detail = "info", "Checking connection", "Probing connectivity endpoints..."
    else:
        level, headline, detail = "info", "Connectivity unknown", "No connectivity check has completed yet."

    extra = []
    if snapshot.hint is ConnectivityHint.CHECK_BACKEND_CONFIG and state.is_failure:
        extra.append(BACKEND_HINT)
    if snapshot.attempt_counter:
        extra.append(f"Failed manual checks: {snapshot.attempt_counter}.")
    if snapshot.offline_mode:
        extra.append(OFFLINE_MODE_MESSAGE)
    if extra:
        detail = " ".join([detail] + extra)

    actions = [
        AlertAction(
            "check_now",
            "Checking..." if snapshot.is_checking else "Check Connection",
            enabled=not snapshot.is_checking,
        )
    ]
    if not snapshot.offline_mode:
        actions.append(AlertAction("enable_offline_mode", "Enable Offline Mode"))
    actions.append(AlertAction("dismiss", "Dismiss"))

    return AlertView(
        visible=snapshot.alert_visible,
        level=level,
        headline=headline,
        detail=detail,
        attempt_counter=snapshot.attempt_counter,
        state=state,
        is_checking=snapshot.is_checking,
        offline_mode=snapshot.offline_mode,
        actions=tuple(actions),
        snapshot=snapshot,
    )


class NotificationSurface:
    """Caller-facing view over a ``ConnectivityMonitor``.

    Raises an alert on every settled state change and when offline mode
    switches on. The actions delegate to the monitor and return the rendered
    result.
    """

    def __init__(self, monitor, alerter: Optional[Alerter] = None, notify_on_recovery: bool = True):
        self.monitor = monitor
        self.alerter = alerter or Alerter()
        self.notify_on_recovery = notify_on_recovery
        self._subscription = None
        self._last_state: Optional[ConnectivityState] = None
        self._last_offline_mode = monitor.snapshot.offline_mode

    def attach(self) -> None:
        if self._subscription is None:
            self._subscription = self.monitor.subscribe(self._on_snapshot)

    def detach(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None

    def render(self, snapshot: Optional[MonitorSnapshot] = None) -> AlertView:
        return render(snapshot or self.monitor.snapshot)

    async def check_now(self) -> AlertView:
        snapshot = await self.monitor.trigger_manual_check()
        if snapshot.state is ConnectivityState.ONLINE:
            logger.info("✅ Your internet connection is working")
        else:
            logger.warning("⚠️  Internet connectivity issues detected")
        return self.render(snapshot)

    async def dismiss(self) -> AlertView:
        return self.render(await self.monitor.dismiss_alert())

    async def force_offline_mode(self) -> AlertView:
        return self.render(await self.monitor.force_offline_mode())

    def _on_snapshot(self, snapshot: MonitorSnapshot) -> None:
        if snapshot.offline_mode and not self._last_offline_mode:
            self.alerter.alert("Offline mode enabled", OFFLINE_MODE_MESSAGE, level="warning")
        self._last_offline_mode = snapshot.offline_mode

        if snapshot.is_checking or snapshot.state in (ConnectivityState.UNKNOWN, ConnectivityState.CHECKING):
            return
        previous, self._last_state = self._last_state, snapshot.state
        if previous is snapshot.state:
            return

        view = render(snapshot)
        if snapshot.state is ConnectivityState.ONLINE:
            if previous is None or not previous.is_failure:
                return
            if self.notify_on_recovery:
                self.alerter.alert("Connection restored", view.detail, level="info")
            return
        level = "error" if snapshot.state is ConnectivityState.OFFLINE else "warning"
        self.alerter.alert(view.headline, view.detail, level=level)
