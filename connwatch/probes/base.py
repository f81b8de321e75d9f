"""Probe data types and the executor interface."""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from ..config import EndpointConfig


class EndpointClass(str, Enum):
    GENERAL = "general"
    BACKEND = "backend"


class FailureReason(str, Enum):
    """Coarse probe failure reasons. Raw exceptions are never kept."""

    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    HTTP_ERROR = "http_error"


class ConnectivityHint(str, Enum):
    """Where to look when a cycle did not reach the backend."""

    NONE = "none"
    CHECK_NETWORK = "check_network"
    CHECK_BACKEND_CONFIG = "check_backend_config"
    BYPASSED = "bypassed"


@dataclass(frozen=True)
class Endpoint:
    name: str
    url: str
    method: str = "HEAD"
    timeout_ms: int = 5000
    classification: EndpointClass = EndpointClass.GENERAL

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0

    @property
    def is_backend(self) -> bool:
        return self.classification is EndpointClass.BACKEND

    @classmethod
    def from_config(cls, config: EndpointConfig) -> "Endpoint":
        return cls(
            name=config.name,
            url=config.url,
            method=config.method.upper(),
            timeout_ms=int(config.timeout_ms),
            classification=EndpointClass(config.classification.lower()),
        )


@dataclass(frozen=True)
class ProbeResult:
    endpoint: Endpoint
    success: bool
    latency_ms: Optional[float] = None
    error: Optional[FailureReason] = None
    status_code: Optional[int] = None
    detail: str = ""


@dataclass(frozen=True)
class ChainOutcome:
    """Result of one chain run: single boolean plus the probe trail."""

    reachable: bool
    via: Optional[Endpoint] = None
    results: Tuple[ProbeResult, ...] = field(default_factory=tuple)

    @property
    def tried(self) -> frozenset:
        return frozenset(result.endpoint for result in self.results)

    @property
    def general_ok(self) -> bool:
        return any(r.success and not r.endpoint.is_backend for r in self.results)

    @property
    def backend_ok(self) -> bool:
        return any(r.success and r.endpoint.is_backend for r in self.results)


class ProbeExecutor(ABC):
    """Issues one bounded reachability probe. Implementations never raise."""

    @abstractmethod
    async def probe(self, endpoint: Endpoint) -> ProbeResult:
        """Probe a single endpoint within its timeout."""
