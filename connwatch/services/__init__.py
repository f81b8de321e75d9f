"""Collaborator interfaces and their default implementations."""

from .base import BackendClient, TradingService
from .http_backend import HttpBackendClient
from .trading_flag import LocalTradingService

__all__ = ["BackendClient", "TradingService", "HttpBackendClient", "LocalTradingService"]
