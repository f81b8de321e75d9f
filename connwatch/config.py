"""Application configuration and settings management."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return str(raw).lower() in {"1", "true", "yes", "on"}


def _env_number(name: str, default, caster):
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return caster(raw)
    except ValueError as exc:
        raise ValueError(f"{name} value '{raw}' is invalid") from exc


@dataclass
class EndpointConfig:
    name: str
    url: str
    method: str = "HEAD"
    timeout_ms: int = 5000
    classification: str = "general"  # "general" or "backend"


def _default_endpoints() -> List[EndpointConfig]:
    backend_url = os.environ.get("BACKEND_BASE_URL", "https://api.binance.com").rstrip("/")
    return [
        EndpointConfig(name="httpbin", url="https://httpbin.org/status/200"),
        EndpointConfig(name="cloudflare-trace", url="https://www.cloudflare.com/cdn-cgi/trace"),
        EndpointConfig(name="google-204", url="https://www.google.com/generate_204"),
        EndpointConfig(
            name="backend-ping",
            url=f"{backend_url}/api/v3/ping",
            method="GET",
            classification="backend",
        ),
        EndpointConfig(
            name="backend-time",
            url=f"{backend_url}/api/v3/time",
            method="GET",
            classification="backend",
        ),
    ]


@dataclass
class ProbeConfig:
    endpoints: List[EndpointConfig] = field(default_factory=_default_endpoints)
    user_agent: str = "connwatch/1.0"


@dataclass
class MonitorConfig:
    periodic_interval_seconds: float = field(default_factory=lambda: _env_number("CONNWATCH_PERIODIC_INTERVAL", 60.0, float))
    settle_delay_seconds: float = 1.0
    startup_delay_seconds: float = 1.0
    startup_check: bool = True
    offline_mode_threshold: int = field(default_factory=lambda: _env_number("CONNWATCH_OFFLINE_THRESHOLD", 2, int))
    backend_confirm_timeout_seconds: float = 10.0

    # Skip the network entirely and report ONLINE
    bypass_checks: bool = field(default_factory=lambda: _env_bool("CONNWATCH_BYPASS_CHECKS", False))

    # OS network-change notifications via interface polling
    watch_interfaces: bool = field(default_factory=lambda: _env_bool("CONNWATCH_WATCH_INTERFACES", True))
    interface_poll_seconds: float = 2.0


@dataclass
class BackendConfig:
    base_url: str = field(default_factory=lambda: os.environ.get("BACKEND_BASE_URL", "https://api.binance.com"))
    ping_path: str = "/api/v3/ping"
    timeout_seconds: float = 10.0

    @property
    def ping_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/{self.ping_path.lstrip('/')}"


@dataclass
class TelegramConfig:
    """Configuration for Telegram notifications."""
    enabled: bool = field(default_factory=lambda: os.environ.get("TELEGRAM_ENABLED", "False").lower() == "true")
    bot_token: str = field(default_factory=lambda: os.environ.get("TELEGRAM_BOT_TOKEN", ""))
    chat_id: str = field(default_factory=lambda: os.environ.get("TELEGRAM_CHAT_ID", ""))
    notify_on_recovery: bool = True


@dataclass
class LoggingConfig:
    level: str = field(default_factory=lambda: os.environ.get("CONNWATCH_LOG_LEVEL", "INFO"))
    log_file: Optional[str] = field(default_factory=lambda: os.environ.get("CONNWATCH_LOG_FILE"))
    timezone: Optional[str] = field(default_factory=lambda: os.environ.get("CONNWATCH_LOG_TZ"))
    serialize: bool = False


@dataclass
class DashboardConfig:
    host: str = field(default_factory=lambda: os.environ.get("DASHBOARD_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: _env_number("DASHBOARD_PORT", 8000, int))
    allowed_origins: List[str] = field(default_factory=lambda: ["http://localhost:3000", "http://localhost:5173"])


@dataclass
class Settings:
    probes: ProbeConfig = field(default_factory=ProbeConfig)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    backend: BackendConfig = field(default_factory=BackendConfig)
    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    dashboard: DashboardConfig = field(default_factory=DashboardConfig)

    def validate(self) -> None:
        if not self.probes.endpoints and not self.monitor.bypass_checks:
            raise ValueError("at least one probe endpoint is required")
        names = [endpoint.name for endpoint in self.probes.endpoints]
        if len(names) != len(set(names)):
            raise ValueError("probe endpoint names must be unique")
        for endpoint in self.probes.endpoints:
            if endpoint.classification not in {"general", "backend"}:
                raise ValueError(
                    f"endpoint {endpoint.name}: classification must be 'general' or 'backend'"
                )
            if endpoint.timeout_ms <= 0:
                raise ValueError(f"endpoint {endpoint.name}: timeout must be positive")
            if endpoint.method.upper() not in {"GET", "HEAD"}:
                raise ValueError(f"endpoint {endpoint.name}: method must be GET or HEAD")
        if self.monitor.periodic_interval_seconds <= 0:
            raise ValueError("periodic interval must be positive")
        if self.monitor.settle_delay_seconds < 0:
            raise ValueError("settle delay cannot be negative")
        if self.monitor.offline_mode_threshold < 0:
            raise ValueError("offline mode threshold cannot be negative")
        if self.monitor.backend_confirm_timeout_seconds <= 0:
            raise ValueError("backend confirmation timeout must be positive")
