"""Configuration loading from environment variables."""

from __future__ import annotations

import os

from kusanagi.models.config import (
    APIConfig,
    KusanagiConfig,
    LogConfig,
    ProviderConfig,
    SessionConfig,
    TelemetryConfig,
)


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"KUSANAGI_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float, min_val: float | None = None, max_val: float | None = None) -> float:
    val = float(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_path(value: str) -> str:
    if not value.startswith("/"):
        raise ValueError(f"Invalid websocket path: {value!r}. Must start with '/'")
    return value


def _validate_session(session: SessionConfig) -> SessionConfig:
    if session.heartbeat_interval <= 0:
        raise ValueError("Heartbeat interval must be positive")
    if session.client_timeout <= session.heartbeat_interval:
        raise ValueError(
            f"Client timeout ({session.client_timeout}s) must exceed the heartbeat "
            f"interval ({session.heartbeat_interval}s)"
        )
    if session.alert_poll_interval <= session.heartbeat_interval:
        raise ValueError(
            f"Alert poll interval ({session.alert_poll_interval}s) must exceed the heartbeat "
            f"interval ({session.heartbeat_interval}s)"
        )
    return session


def load_config() -> KusanagiConfig:
    """Load configuration from KUSANAGI_* environment variables."""
    return KusanagiConfig(
        cluster_name=_env("CLUSTER_NAME", "k3s-cluster"),
        providers=ProviderConfig(
            argocd_namespace=_env("ARGOCD_NAMESPACE", "argocd"),
            argocd_url=_env("ARGOCD_URL", "https://argocd.local").rstrip("/"),
            alertmanager_url=_env(
                "ALERTMANAGER_URL",
                "http://kube-prometheus-stack-alertmanager.kube-prometheus-stack.svc:9093",
            ).rstrip("/"),
            prometheus_url=_env("PROMETHEUS_URL", "http://prometheus-server.observability.svc:9090").rstrip("/"),
            timeout_seconds=_env_float("PROVIDER_TIMEOUT", 10.0, min_val=1.0, max_val=60.0),
        ),
        session=_validate_session(
            SessionConfig(
                heartbeat_interval=_env_float("HEARTBEAT_INTERVAL", 5.0),
                client_timeout=_env_float("CLIENT_TIMEOUT", 10.0),
                alert_poll_interval=_env_float("ALERT_POLL_INTERVAL", 30.0),
                stats_cache_seconds=_env_float("STATS_CACHE_SECONDS", 0.0, min_val=0.0),
            )
        ),
        telemetry=TelemetryConfig(
            enabled=_env_bool("TELEMETRY_ENABLED", False),
            endpoint=_env("TELEMETRY_ENDPOINT", "https://openobserve.local/api/default/v1/logs"),
            auth_secret_ref=_env("TELEMETRY_AUTH_SECRET_REF", ""),
            batch_size=_env_int("TELEMETRY_BATCH_SIZE", 10, min_val=1, max_val=1000),
            flush_interval=_env_float("TELEMETRY_FLUSH_INTERVAL", 5.0, min_val=0.5),
            sample_rate=_env_float("TELEMETRY_SAMPLE_RATE", 1.0, min_val=0.0, max_val=1.0),
        ),
        api=APIConfig(
            port=_env_int("API_PORT", 8080, min_val=1024, max_val=65535),
            ws_port=_env_int("WS_PORT", 8081, min_val=1024, max_val=65535),
            ws_path=_validate_path(_env("WS_PATH", "/ws/notifications")),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )
