"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class IdentityConfig:
    """Identity of the workload hosting this process."""

    namespace: str = "default"
    pod_name: str = ""
    container_id: str = ""


@dataclass
class WatchConfig:
    """Pod watch stream reconnect policy."""

    backoff_base_seconds: float = 5.0
    backoff_max_seconds: float = 300.0


@dataclass
class ResolverConfig:
    """Retry policy for failed topology resolution passes."""

    retry_base_seconds: float = 2.0
    retry_max_seconds: float = 60.0


@dataclass
class APIConfig:
    """Status API configuration."""

    enabled: bool = True
    port: int = 8080


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"
    format: str = "json"


@dataclass
class KubeInfoConfig:
    """Top-level kubeinfo configuration."""

    initialization_timeout_seconds: float = 5.0
    cluster_check_enabled: bool = True
    identity: IdentityConfig = field(default_factory=IdentityConfig)
    watch: WatchConfig = field(default_factory=WatchConfig)
    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)
