"""Core data structures for kubeinfo."""

from kubeinfo.models.config import KubeInfoConfig
from kubeinfo.models.resources import (
    ChangeNotification,
    ContainerStatus,
    DecodeError,
    EventType,
    KubeObject,
    ObjectMeta,
    OwnerReference,
    Pod,
    WatchEvent,
)
from kubeinfo.models.snapshot import TopologySnapshot

__all__ = [
    "ChangeNotification",
    "ContainerStatus",
    "DecodeError",
    "EventType",
    "KubeInfoConfig",
    "KubeObject",
    "ObjectMeta",
    "OwnerReference",
    "Pod",
    "TopologySnapshot",
    "WatchEvent",
]
