"""Connectivity states and the immutable snapshot published to callers."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from ..probes.base import ConnectivityHint


class ConnectivityState(str, Enum):
    UNKNOWN = "unknown"
    CHECKING = "checking"
    ONLINE = "online"
    DEGRADED = "degraded"
    OFFLINE = "offline"

    @property
    def is_failure(self) -> bool:
        return self in (ConnectivityState.DEGRADED, ConnectivityState.OFFLINE)


class CheckTrigger(str, Enum):
    STARTUP = "startup"
    MANUAL = "manual"
    PERIODIC = "periodic"
    NETWORK = "network"
    EXTERNAL = "external"


class NetworkEvent(str, Enum):
    WENT_ONLINE = "went_online"
    WENT_OFFLINE = "went_offline"


@dataclass(frozen=True)
class MonitorSnapshot:
    state: ConnectivityState = ConnectivityState.UNKNOWN
    is_checking: bool = False
    attempt_counter: int = 0
    last_checked_at: Optional[datetime] = None
    via: Optional[str] = None
    hint: ConnectivityHint = ConnectivityHint.NONE
    alert_visible: bool = False
    offline_mode: bool = False
    trigger: Optional[CheckTrigger] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "is_checking": self.is_checking,
            "attempt_counter": self.attempt_counter,
            "last_checked_at": self.last_checked_at.isoformat() if self.last_checked_at else None,
            "via": self.via,
            "hint": self.hint.value,
            "alert_visible": self.alert_visible,
            "offline_mode": self.offline_mode,
            "trigger": self.trigger.value if self.trigger else None,
        }
