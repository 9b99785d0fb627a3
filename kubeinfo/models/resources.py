"""Kubernetes resource shapes decoded from the API server's JSON.

Only the fields needed to identify a workload are kept. Every type is a
frozen dataclass built from the camelCase wire representation through its
``from_dict`` constructor, so watch-stream payloads and point-query results
share one decoding path.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

# "docker://", "containerd://", "cri-o://" ...
_RUNTIME_SCHEME = re.compile(r"^[A-Za-z0-9.+-]+://")


class DecodeError(ValueError):
    """Raised when a watch line or resource payload cannot be decoded."""


class EventType(StrEnum):
    """Watch event types emitted by the API server."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
    BOOKMARK = "BOOKMARK"
    ERROR = "ERROR"


def normalize_container_id(container_id: str | None) -> str:
    """Strip the runtime scheme prefix from a container id.

    ``docker://3f1c...`` and ``3f1c...`` normalize to the same value.
    """
    if not container_id:
        return ""
    return _RUNTIME_SCHEME.sub("", container_id.strip(), count=1)


def _as_dict(value: object, path: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise DecodeError(f"{path} must be an object, got {type(value).__name__}")
    return value


def _as_list(value: object, path: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise DecodeError(f"{path} must be an array, got {type(value).__name__}")
    return value


def _as_str(value: object) -> str:
    return "" if value is None else str(value)


@dataclass(frozen=True)
class OwnerReference:
    """Pointer from a subordinate resource to its controller, matched by UID."""

    kind: str
    uid: str
    name: str = ""

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> OwnerReference:
        return cls(
            kind=_as_str(raw.get("kind")),
            uid=_as_str(raw.get("uid")),
            name=_as_str(raw.get("name")),
        )


@dataclass(frozen=True)
class ObjectMeta:
    """Subset of ``metadata`` shared by every resource kind."""

    name: str = ""
    uid: str = ""
    namespace: str = ""
    resource_version: str = ""
    labels: Mapping[str, str] = field(default_factory=dict)
    owner_references: tuple[OwnerReference, ...] = ()

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> ObjectMeta:
        labels = _as_dict(raw.get("labels"), "metadata.labels")
        owners = _as_list(raw.get("ownerReferences"), "metadata.ownerReferences")
        return cls(
            name=_as_str(raw.get("name")),
            uid=_as_str(raw.get("uid")),
            namespace=_as_str(raw.get("namespace")),
            resource_version=_as_str(raw.get("resourceVersion")),
            labels={str(k): _as_str(v) for k, v in labels.items()},
            owner_references=tuple(
                OwnerReference.from_dict(_as_dict(o, "metadata.ownerReferences[]")) for o in owners
            ),
        )

    def owner_uids(self, kind: str) -> set[str]:
        """Return the UIDs of every owner reference of *kind*."""
        return {ref.uid for ref in self.owner_references if ref.kind == kind and ref.uid}


@dataclass(frozen=True)
class KubeObject:
    """A resource identified only by its kind and metadata (ReplicaSet, Deployment, Node)."""

    kind: str
    metadata: ObjectMeta = field(default_factory=ObjectMeta)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any], kind: str = "") -> KubeObject:
        return cls(
            kind=_as_str(raw.get("kind")) or kind,
            metadata=ObjectMeta.from_dict(_as_dict(raw.get("metadata"), "metadata")),
        )

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def uid(self) -> str:
        return self.metadata.uid


@dataclass(frozen=True)
class ContainerStatus:
    """One entry of ``status.containerStatuses``."""

    name: str
    container_id: str = ""
    image: str = ""
    ready: bool = False

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> ContainerStatus:
        return cls(
            name=_as_str(raw.get("name")),
            container_id=_as_str(raw.get("containerID")),
            image=_as_str(raw.get("image")),
            ready=bool(raw.get("ready", False)),
        )


@dataclass(frozen=True)
class Pod(KubeObject):
    """A Pod with the spec and status fields used for topology resolution."""

    kind: str = "Pod"
    node_name: str = ""
    phase: str = ""
    container_statuses: tuple[ContainerStatus, ...] = ()

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any], kind: str = "Pod") -> Pod:
        spec = _as_dict(raw.get("spec"), "spec")
        status = _as_dict(raw.get("status"), "status")
        statuses = _as_list(status.get("containerStatuses"), "status.containerStatuses")
        return cls(
            kind=_as_str(raw.get("kind")) or kind,
            metadata=ObjectMeta.from_dict(_as_dict(raw.get("metadata"), "metadata")),
            node_name=_as_str(spec.get("nodeName")),
            phase=_as_str(status.get("phase")),
            container_statuses=tuple(
                ContainerStatus.from_dict(_as_dict(s, "status.containerStatuses[]")) for s in statuses
            ),
        )

    def container_status(self, container_id: str | None) -> ContainerStatus | None:
        """Return the status entry for *container_id*.

        Both sides are normalized before comparison. With no container id
        configured, a Pod that runs exactly one container resolves to it.
        """
        wanted = normalize_container_id(container_id)
        if not wanted:
            if len(self.container_statuses) == 1:
                return self.container_statuses[0]
            return None
        for status in self.container_statuses:
            if normalize_container_id(status.container_id) == wanted:
                return status
        return None


@dataclass(frozen=True)
class WatchEvent:
    """One decoded line of a watch stream: ``{"type": ..., "object": {...}}``."""

    event_type: str
    object: dict[str, Any]

    @classmethod
    def from_line(cls, line: bytes | str) -> WatchEvent:
        """Decode a single newline-delimited JSON record.

        Raises:
            DecodeError: the line is not a JSON object with a ``type`` and an
                object-valued ``object``.
        """
        try:
            raw = json.loads(line)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise DecodeError(f"invalid watch line: {exc}") from exc
        if not isinstance(raw, dict):
            raise DecodeError("watch line is not a JSON object")
        event_type = raw.get("type")
        if not isinstance(event_type, str) or not event_type:
            raise DecodeError("watch line has no event type")
        return cls(event_type=event_type, object=_as_dict(raw.get("object"), "object"))

    @property
    def metadata(self) -> dict[str, Any]:
        meta = self.object.get("metadata")
        return meta if isinstance(meta, dict) else {}

    @property
    def uid(self) -> str:
        return _as_str(self.metadata.get("uid"))

    @property
    def resource_version(self) -> str:
        return _as_str(self.metadata.get("resourceVersion"))

    @property
    def name(self) -> str:
        return _as_str(self.metadata.get("name"))

    @property
    def kind(self) -> str:
        return _as_str(self.object.get("kind"))


@dataclass(frozen=True)
class ChangeNotification:
    """Emitted once per distinct (uid, resource version) observed on a watch."""

    event_type: str
    uid: str
    kind: str
    name: str
    resource_version: str
    object: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)
