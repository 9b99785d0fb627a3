"""Immutable topology snapshot published by the resolver."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from kubeinfo.models.resources import ContainerStatus, KubeObject, Pod

# OpenTelemetry k8s semantic-convention attribute keys.
ATTR_NAMESPACE = "k8s.namespace.name"
ATTR_POD_NAME = "k8s.pod.name"
ATTR_POD_UID = "k8s.pod.uid"
ATTR_POD_LABELS = "k8s.pod.labels"
ATTR_CONTAINER_NAME = "k8s.container.name"
ATTR_CONTAINER_ID = "container.id"
ATTR_REPLICASET_NAME = "k8s.replicaset.name"
ATTR_REPLICASET_UID = "k8s.replicaset.uid"
ATTR_DEPLOYMENT_NAME = "k8s.deployment.name"
ATTR_DEPLOYMENT_UID = "k8s.deployment.uid"
ATTR_NODE_NAME = "k8s.node.name"
ATTR_NODE_UID = "k8s.node.uid"


def _or_none(value: str | None) -> str | None:
    return value or None


@dataclass(frozen=True)
class TopologySnapshot:
    """Resolved Pod / ReplicaSet / Deployment / Node identities for this process.

    Built fresh on every successful resolution pass and published by
    replacing the previous instance. Any field may be absent.
    """

    pod: Pod | None = None
    container_status: ContainerStatus | None = None
    replica_set: KubeObject | None = None
    deployment: KubeObject | None = None
    node: KubeObject | None = None
    resolved_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    @property
    def pod_name(self) -> str | None:
        return _or_none(self.pod.metadata.name) if self.pod else None

    @property
    def pod_uid(self) -> str | None:
        return _or_none(self.pod.metadata.uid) if self.pod else None

    @property
    def pod_namespace(self) -> str | None:
        return _or_none(self.pod.metadata.namespace) if self.pod else None

    @property
    def pod_labels(self) -> str | None:
        """Pod labels joined as ``key:value`` pairs separated by commas."""
        if self.pod is None or not self.pod.metadata.labels:
            return None
        return ",".join(f"{k}:{v}" for k, v in self.pod.metadata.labels.items())

    @property
    def container_name(self) -> str | None:
        return _or_none(self.container_status.name) if self.container_status else None

    @property
    def container_id(self) -> str | None:
        return _or_none(self.container_status.container_id) if self.container_status else None

    @property
    def replica_set_name(self) -> str | None:
        return _or_none(self.replica_set.name) if self.replica_set else None

    @property
    def replica_set_uid(self) -> str | None:
        return _or_none(self.replica_set.uid) if self.replica_set else None

    @property
    def deployment_name(self) -> str | None:
        return _or_none(self.deployment.name) if self.deployment else None

    @property
    def deployment_uid(self) -> str | None:
        return _or_none(self.deployment.uid) if self.deployment else None

    @property
    def node_name(self) -> str | None:
        return _or_none(self.node.name) if self.node else None

    @property
    def node_uid(self) -> str | None:
        return _or_none(self.node.uid) if self.node else None

    def as_attributes(self) -> dict[str, str]:
        """Flatten the snapshot into telemetry attributes, omitting absent values."""
        pairs = {
            ATTR_NAMESPACE: self.pod_namespace,
            ATTR_POD_NAME: self.pod_name,
            ATTR_POD_UID: self.pod_uid,
            ATTR_POD_LABELS: self.pod_labels,
            ATTR_CONTAINER_NAME: self.container_name,
            ATTR_CONTAINER_ID: self.container_id,
            ATTR_REPLICASET_NAME: self.replica_set_name,
            ATTR_REPLICASET_UID: self.replica_set_uid,
            ATTR_DEPLOYMENT_NAME: self.deployment_name,
            ATTR_DEPLOYMENT_UID: self.deployment_uid,
            ATTR_NODE_NAME: self.node_name,
            ATTR_NODE_UID: self.node_uid,
        }
        return {key: value for key, value in pairs.items() if value is not None}
