"""Configuration loading from environment variables."""

from __future__ import annotations

import os
import re
from pathlib import Path

from kubeinfo.models.config import (
    APIConfig,
    IdentityConfig,
    KubeInfoConfig,
    LogConfig,
    ResolverConfig,
    WatchConfig,
)

SERVICE_ACCOUNT_NAMESPACE_FILE = Path("/var/run/secrets/kubernetes.io/serviceaccount/namespace")
CGROUP_FILE = Path("/proc/self/cgroup")

_CONTAINER_ID_RE = re.compile(r"([0-9a-f]{64})")


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"KUBEINFO_{key}", default)


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


def _validate_log_format(value: str) -> str:
    valid = {"json", "console"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log format: {value}. Must be one of {valid}")
    return value.lower()


def read_namespace_file(path: Path = SERVICE_ACCOUNT_NAMESPACE_FILE) -> str:
    """Return the namespace mounted with the service account, or ''."""
    try:
        return path.read_text(encoding="utf-8").strip()
    except OSError:
        return ""


def detect_container_id(path: Path = CGROUP_FILE) -> str:
    """Best-effort container id from the cgroup hierarchy of this process.

    cgroup v2 hosts often expose only ``0::/``; in that case '' is returned
    and the resolver falls back to the Pod's single container.
    """
    try:
        content = path.read_text(encoding="utf-8")
    except OSError:
        return ""
    for line in content.splitlines():
        match = _CONTAINER_ID_RE.search(line)
        if match:
            return match.group(1)
    return ""


def load_config() -> KubeInfoConfig:
    """Load configuration from KUBEINFO_* environment variables."""
    namespace = _env("NAMESPACE") or read_namespace_file() or "default"
    pod_name = _env("POD_NAME") or os.environ.get("HOSTNAME", "")
    container_id = _env("CONTAINER_ID") or detect_container_id()

    return KubeInfoConfig(
        initialization_timeout_seconds=_env_float("INIT_TIMEOUT", 5.0, min_val=0.0, max_val=600.0),
        cluster_check_enabled=_env_bool("CLUSTER_CHECK", True),
        identity=IdentityConfig(
            namespace=namespace,
            pod_name=pod_name,
            container_id=container_id,
        ),
        watch=WatchConfig(
            backoff_base_seconds=_env_float("WATCH_BACKOFF_BASE", 5.0, min_val=1.0, max_val=60.0),
            backoff_max_seconds=_env_float("WATCH_BACKOFF_MAX", 300.0, min_val=1.0, max_val=3600.0),
        ),
        resolver=ResolverConfig(
            retry_base_seconds=_env_float("RESOLVE_RETRY_BASE", 2.0, min_val=1.0, max_val=60.0),
            retry_max_seconds=_env_float("RESOLVE_RETRY_MAX", 60.0, min_val=1.0, max_val=3600.0),
        ),
        api=APIConfig(
            enabled=_env_bool("API_ENABLED", True),
            port=_env_int("API_PORT", 8080, min_val=1024, max_val=65535),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
            format=_validate_log_format(_env("LOG_FORMAT", "json")),
        ),
    )


def in_cluster() -> bool:
    """True when the process sees the in-cluster API server service variables."""
    return bool(os.environ.get("KUBERNETES_SERVICE_HOST"))
