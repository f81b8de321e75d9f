"""Structured log records for settled connectivity transitions."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..utils.logger import logger
from .state import ConnectivityState, MonitorSnapshot


@dataclass(frozen=True)
class TransitionRecord:
    """One settled state change, as written to the ``transition`` log extra."""

    previous: ConnectivityState
    state: ConnectivityState
    hint: str
    via: Optional[str]
    trigger: Optional[str]
    attempt_counter: int
    offline_mode: bool
    checked_at: Optional[str]

    @classmethod
    def from_snapshot(cls, previous: ConnectivityState, snapshot: MonitorSnapshot) -> "TransitionRecord":
        return cls(
            previous=previous,
            state=snapshot.state,
            hint=snapshot.hint.value,
            via=snapshot.via,
            trigger=snapshot.trigger.value if snapshot.trigger else None,
            attempt_counter=snapshot.attempt_counter,
            offline_mode=snapshot.offline_mode,
            checked_at=snapshot.last_checked_at.isoformat() if snapshot.last_checked_at else None,
        )

    @property
    def level(self) -> str:
        return "WARNING" if self.state.is_failure else "INFO"

    def describe(self) -> str:
        text = f"Connectivity {self.previous.value} -> {self.state.value}"
        if self.via:
            text += f" via {self.via}"
        if self.hint != "none":
            text += f" ({self.hint.replace('_', ' ')})"
        return text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "previous": self.previous.value,
            "state": self.state.value,
            "hint": self.hint,
            "via": self.via,
            "trigger": self.trigger,
            "attempt_counter": self.attempt_counter,
            "offline_mode": self.offline_mode,
            "checked_at": self.checked_at,
        }


def log_transition(previous: ConnectivityState, snapshot: MonitorSnapshot) -> Optional[TransitionRecord]:
    """Log ``snapshot`` if it settled on a different state than ``previous``.

    Returns the record that was written, or None when the state is unchanged.
    Sinks see the record under ``extra["transition"]``.
    """
    if snapshot.state is previous:
        return None
    record = TransitionRecord.from_snapshot(previous, snapshot)
    logger.bind(event_type="connectivity.transition", transition=record.to_dict()).log(
        record.level, record.describe()
    )
    return record


__all__ = ["TransitionRecord", "log_transition"]
