"""TopologyResolver: Pod -> ReplicaSet -> Deployment and Pod -> Node resolution.

The resolver consumes the watcher's change notifications on its own task.
Only notifications for this process's Pod are acted upon. Each pass re-reads
the Pod (the notification payload is advisory), walks owner references by
UID, looks up the Node concurrently with the workload walk, and publishes a
new immutable TopologySnapshot by rebinding a single attribute.

Passes are serialized: notifications arriving during a pass collapse into
one follow-up pass. A failed pass leaves the previous snapshot and the
readiness gate untouched and is retried after the next delay from the
resolver's own BackoffScheduler, unless a newer notification arrives first.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator, Callable, Iterable
from typing import Protocol

import structlog

from kubeinfo.collector.backoff import BackoffScheduler, backoff_factory
from kubeinfo.models.resources import ChangeNotification, EventType, KubeObject, Pod
from kubeinfo.models.snapshot import TopologySnapshot
from kubeinfo.observability.metrics import resolution_duration_seconds, resolutions_total
from kubeinfo.topology.readiness import ReadinessGate

_log = structlog.get_logger(component="topology.resolver")


class QueryClient(Protocol):
    """Point queries the resolver depends on."""

    async def get_own_pod(self) -> Pod: ...

    async def list_replica_sets(self, namespace: str) -> list[KubeObject]: ...

    async def list_deployments(self, namespace: str) -> list[KubeObject]: ...

    async def list_nodes(self) -> list[KubeObject]: ...


def select_replica_set(pod: Pod, replica_sets: Iterable[KubeObject]) -> KubeObject | None:
    """Return the ReplicaSet named by UID in the Pod's owner references."""
    owner_uids = pod.metadata.owner_uids("ReplicaSet")
    if not owner_uids:
        return None
    return next((rs for rs in replica_sets if rs.uid in owner_uids), None)


def select_deployment(replica_set: KubeObject, deployments: Iterable[KubeObject]) -> KubeObject | None:
    """Return the Deployment named by UID in the ReplicaSet's owner references."""
    owner_uids = replica_set.metadata.owner_uids("Deployment")
    if not owner_uids:
        return None
    return next((d for d in deployments if d.uid in owner_uids), None)


def select_node(node_name: str, nodes: Iterable[KubeObject]) -> KubeObject | None:
    """Return the first Node whose name matches *node_name* case-insensitively."""
    if not node_name:
        return None
    wanted = node_name.casefold()
    return next((n for n in nodes if n.name and n.name.casefold() == wanted), None)


class TopologyResolver:
    """Resolves and publishes the topology of the Pod hosting this process."""

    def __init__(
        self,
        client: QueryClient,
        gate: ReadinessGate,
        *,
        pod_name: str,
        container_id: str = "",
        namespace: str = "",
        retry_backoff: Callable[[], BackoffScheduler] | None = None,
    ) -> None:
        self._client = client
        self._gate = gate
        self._pod_name = pod_name
        self._container_id = container_id
        self._namespace = namespace
        self._retry_factory = retry_backoff or backoff_factory(2.0, 60.0)
        self._retry = self._retry_factory()
        self._snapshot: TopologySnapshot | None = None
        self._own_uid = ""

        self._pending = False
        self._closed = False
        self._wake = asyncio.Event()
        self._log = _log.bind(pod=pod_name)

    @property
    def snapshot(self) -> TopologySnapshot | None:
        """Latest published snapshot, or None before the first successful pass."""
        return self._snapshot

    @property
    def gate(self) -> ReadinessGate:
        return self._gate

    # ------------------------------------------------------------------
    # Notification intake
    # ------------------------------------------------------------------

    def is_own_pod(self, notification: ChangeNotification) -> bool:
        if notification.kind and notification.kind != "Pod":
            return False
        if self._own_uid and notification.uid == self._own_uid:
            return True
        return bool(self._pod_name) and notification.name == self._pod_name

    def notify(self, notification: ChangeNotification) -> bool:
        """Schedule a resolution pass if *notification* concerns this Pod."""
        if not self.is_own_pod(notification):
            return False
        if notification.event_type == EventType.DELETED:
            self._log.warning("own_pod_deleted", uid=notification.uid)
            return False
        self._pending = True
        self._wake.set()
        return True

    async def run(self, notifications: AsyncIterator[ChangeNotification]) -> None:
        """Consume *notifications* until exhausted, resolving on relevant changes.

        Returns once the sequence ends and any pending pass has completed.
        """
        worker = asyncio.create_task(self._work_loop(), name="topology-resolver")
        try:
            async for notification in notifications:
                self.notify(notification)
            self._closed = True
            self._wake.set()
            await worker
        finally:
            if not worker.done():
                worker.cancel()
                try:
                    await worker
                except asyncio.CancelledError:
                    pass

    async def _work_loop(self) -> None:
        retry_delay: float | None = None
        while True:
            if not self._pending:
                if self._closed:
                    return
                self._wake.clear()
                try:
                    await asyncio.wait_for(self._wake.wait(), timeout=retry_delay)
                except TimeoutError:
                    self._log.info("topology_resolution_retry", attempt=self._retry.attempts)
                    self._pending = True
                continue

            self._pending = False
            if await self._resolve_pass():
                self._retry = self._retry_factory()
                retry_delay = None
            else:
                retry_delay = self._retry.next().total_seconds()

    async def _resolve_pass(self) -> bool:
        started = time.monotonic()
        try:
            await self.resolve_once()
        except Exception as exc:
            resolutions_total.labels(result="failure").inc()
            self._log.error(
                "topology_resolution_failed",
                error=str(exc),
                error_type=type(exc).__name__,
                snapshot_retained=self._snapshot is not None,
            )
            return False
        finally:
            resolution_duration_seconds.observe(time.monotonic() - started)
        resolutions_total.labels(result="success").inc()
        return True

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def resolve_once(self) -> TopologySnapshot:
        """Run one full resolution pass and publish its snapshot.

        Raises whatever the query client raises; on failure nothing is
        published and the gate is left as it was.
        """
        pod = await self._client.get_own_pod()
        if pod.uid:
            self._own_uid = pod.uid

        container_status = pod.container_status(self._container_id)
        if container_status is None:
            self._log.debug(
                "container_status_not_found",
                container_id=self._container_id,
                containers=len(pod.container_statuses),
            )

        namespace = pod.metadata.namespace or self._namespace
        (replica_set, deployment), node = await asyncio.gather(
            self._resolve_workload(pod, namespace),
            self._resolve_node(pod),
        )

        snapshot = TopologySnapshot(
            pod=pod,
            container_status=container_status,
            replica_set=replica_set,
            deployment=deployment,
            node=node,
        )
        self._snapshot = snapshot
        self._gate.signal_ready()
        self._log.info(
            "topology_resolved",
            pod_uid=snapshot.pod_uid,
            container=snapshot.container_name,
            replica_set=snapshot.replica_set_name,
            deployment=snapshot.deployment_name,
            node=snapshot.node_name,
        )
        return snapshot

    async def _resolve_workload(self, pod: Pod, namespace: str) -> tuple[KubeObject | None, KubeObject | None]:
        if not pod.metadata.owner_uids("ReplicaSet"):
            return None, None
        replica_set = select_replica_set(pod, await self._client.list_replica_sets(namespace))
        if replica_set is None:
            self._log.debug("owner_replica_set_not_found", namespace=namespace)
            return None, None
        deployment = None
        if replica_set.metadata.owner_uids("Deployment"):
            deployment = select_deployment(replica_set, await self._client.list_deployments(namespace))
        return replica_set, deployment

    async def _resolve_node(self, pod: Pod) -> KubeObject | None:
        if not pod.node_name:
            return None
        node = select_node(pod.node_name, await self._client.list_nodes())
        if node is None:
            self._log.debug("node_not_found", node_name=pod.node_name)
        return node
