"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ProviderConfig:
    """Snapshot provider endpoints and limits."""

    argocd_namespace: str = "argocd"
    argocd_url: str = "https://argocd.local"
    alertmanager_url: str = "http://kube-prometheus-stack-alertmanager.kube-prometheus-stack.svc:9093"
    prometheus_url: str = "http://prometheus-server.observability.svc:9090"
    timeout_seconds: float = 10.0


@dataclass
class SessionConfig:
    """Notification session timers (seconds)."""

    heartbeat_interval: float = 5.0
    client_timeout: float = 10.0
    alert_poll_interval: float = 30.0
    stats_cache_seconds: float = 0.0


@dataclass
class TelemetryConfig:
    """Batched span export to an OpenObserve-compatible endpoint."""

    enabled: bool = False
    endpoint: str = "https://openobserve.local/api/default/v1/logs"
    auth_secret_ref: str = ""
    batch_size: int = 10
    flush_interval: float = 5.0
    sample_rate: float = 1.0


@dataclass
class APIConfig:
    """REST API and notification server configuration."""

    port: int = 8080
    ws_port: int = 8081
    ws_path: str = "/ws/notifications"


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class KusanagiConfig:
    """Top-level Kusanagi configuration."""

    cluster_name: str = "k3s-cluster"
    providers: ProviderConfig = field(default_factory=ProviderConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)
