"""KubeEnvironment: the handle telemetry integrations receive at construction."""

from __future__ import annotations

from datetime import timedelta

from kubeinfo.models.snapshot import TopologySnapshot
from kubeinfo.topology.resolver import TopologyResolver

_DEFAULT_INIT_TIMEOUT = timedelta(seconds=5)


class KubeEnvironment:
    """Read-only view over the latest topology snapshot.

    Every accessor reads the resolver's current snapshot once, so a single
    call never mixes fields from two passes. Accessors return None until the
    first successful resolution.
    """

    def __init__(self, resolver: TopologyResolver, init_timeout: timedelta = _DEFAULT_INIT_TIMEOUT) -> None:
        self._resolver = resolver
        self._init_timeout = init_timeout

    @property
    def snapshot(self) -> TopologySnapshot | None:
        return self._resolver.snapshot

    @property
    def is_ready(self) -> bool:
        return self._resolver.gate.is_ready

    async def await_ready(self, timeout: float | timedelta | None = None) -> bool:
        """Block until the first snapshot is published or *timeout* elapses.

        Defaults to the configured initialization timeout.
        """
        return await self._resolver.gate.await_ready(self._init_timeout if timeout is None else timeout)

    def attributes(self) -> dict[str, str]:
        """Telemetry attributes for the current snapshot (empty before the first pass)."""
        snapshot = self._resolver.snapshot
        return snapshot.as_attributes() if snapshot is not None else {}

    def _get(self, name: str) -> str | None:
        snapshot = self._resolver.snapshot
        return getattr(snapshot, name) if snapshot is not None else None

    @property
    def pod_name(self) -> str | None:
        return self._get("pod_name")

    @property
    def pod_uid(self) -> str | None:
        return self._get("pod_uid")

    @property
    def pod_namespace(self) -> str | None:
        return self._get("pod_namespace")

    @property
    def pod_labels(self) -> str | None:
        return self._get("pod_labels")

    @property
    def container_name(self) -> str | None:
        return self._get("container_name")

    @property
    def container_id(self) -> str | None:
        return self._get("container_id")

    @property
    def replica_set_name(self) -> str | None:
        return self._get("replica_set_name")

    @property
    def replica_set_uid(self) -> str | None:
        return self._get("replica_set_uid")

    @property
    def deployment_name(self) -> str | None:
        return self._get("deployment_name")

    @property
    def deployment_uid(self) -> str | None:
        return self._get("deployment_uid")

    @property
    def node_name(self) -> str | None:
        return self._get("node_name")

    @property
    def node_uid(self) -> str | None:
        return self._get("node_uid")
