"""Reachability probes and probe chains."""

from .base import ChainOutcome, ConnectivityHint, Endpoint, EndpointClass, FailureReason, ProbeExecutor, ProbeResult
from .chain import ProbeChainRunner, classify, order_endpoints
from .http_probe import HttpProbeExecutor

__all__ = [
    "ChainOutcome",
    "ConnectivityHint",
    "Endpoint",
    "EndpointClass",
    "FailureReason",
    "ProbeExecutor",
    "ProbeResult",
    "ProbeChainRunner",
    "classify",
    "order_endpoints",
    "HttpProbeExecutor",
]
