"""Shared fixtures for kubeinfo integration tests.

Wires the real watcher, resolver, readiness gate and environment handle
against an in-memory cluster so the full watch -> resolve -> snapshot path
runs without touching a real Kubernetes API server.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any

import pytest

from kubeinfo.collector.backoff import backoff_factory
from kubeinfo.collector.watcher import WatchStreamClient
from kubeinfo.models.resources import KubeObject, Pod
from kubeinfo.topology.environment import KubeEnvironment
from kubeinfo.topology.readiness import ReadinessGate
from kubeinfo.topology.resolver import TopologyResolver

NAMESPACE = "shop"
POD_NAME = "checkout-6d9f7c5b8-q4w7z"
POD_UID = "5b1e0a4c-pod"

# ---------------------------------------------------------------------------
# Resource factories
# ---------------------------------------------------------------------------


def make_pod_dict(
    rv: str = "100",
    name: str = POD_NAME,
    uid: str = POD_UID,
    rs_uid: str = "rs-uid-1",
    node_name: str = "worker-1",
    labels: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Create a Pod payload in API server JSON shape."""
    return {
        "kind": "Pod",
        "metadata": {
            "name": name,
            "uid": uid,
            "namespace": NAMESPACE,
            "resourceVersion": rv,
            "labels": labels if labels is not None else {"app": "checkout"},
            "ownerReferences": [{"kind": "ReplicaSet", "uid": rs_uid, "name": f"rs-{rs_uid}"}],
        },
        "spec": {"nodeName": node_name},
        "status": {
            "phase": "Running",
            "containerStatuses": [
                {"name": "checkout", "containerID": "containerd://c0ffee", "image": "shop/checkout:2", "ready": True}
            ],
        },
    }


def make_object(kind: str, name: str, uid: str, owner: tuple[str, str] | None = None) -> KubeObject:
    owners = [{"kind": owner[0], "uid": owner[1]}] if owner else []
    return KubeObject.from_dict({"kind": kind, "metadata": {"name": name, "uid": uid, "ownerReferences": owners}})


def event_line(event_type: str, obj: dict[str, Any]) -> bytes:
    return (json.dumps({"type": event_type, "object": obj}) + "\n").encode()


# ---------------------------------------------------------------------------
# In-memory cluster
# ---------------------------------------------------------------------------


class FakeCluster:
    """Serves point queries from mutable state and watch lines from a queue.

    Every ``watch_pods`` call opens a new connection; ``disconnect()`` ends
    the current one so the watcher reconnects. ``fail_queries`` makes point
    queries raise until it is cleared.
    """

    def __init__(self) -> None:
        self.pod = make_pod_dict()
        self.replica_sets = [
            make_object("ReplicaSet", "checkout-6d9f7c5b8", "rs-uid-1", ("Deployment", "dep-uid-1")),
            make_object("ReplicaSet", "checkout-55c4d7f9b", "rs-uid-2", ("Deployment", "dep-uid-1")),
        ]
        self.deployments = [make_object("Deployment", "checkout", "dep-uid-1")]
        self.nodes = [make_object("Node", "worker-1", "node-uid-1"), make_object("Node", "worker-2", "node-uid-2")]
        self.fail_queries = False
        self.connections = 0
        self.pod_reads = 0
        self._lines: asyncio.Queue[bytes | None] = asyncio.Queue()

    # -- event injection ---------------------------------------------------

    def emit(self, event_type: str, obj: dict[str, Any]) -> None:
        self._lines.put_nowait(event_line(event_type, obj))

    def emit_raw(self, line: bytes) -> None:
        self._lines.put_nowait(line)

    def disconnect(self) -> None:
        self._lines.put_nowait(None)

    # -- QueryClient -------------------------------------------------------

    def _check(self) -> None:
        if self.fail_queries:
            raise ConnectionError("api server unavailable")

    async def get_own_pod(self) -> Pod:
        self._check()
        self.pod_reads += 1
        return Pod.from_dict(self.pod)

    async def list_replica_sets(self, namespace: str) -> list[KubeObject]:
        self._check()
        return list(self.replica_sets)

    async def list_deployments(self, namespace: str) -> list[KubeObject]:
        self._check()
        return list(self.deployments)

    async def list_nodes(self) -> list[KubeObject]:
        self._check()
        return list(self.nodes)

    # -- watch stream ------------------------------------------------------

    @asynccontextmanager
    async def watch_pods(self, namespace: str) -> AsyncIterator[AsyncIterator[bytes]]:
        self.connections += 1
        yield self._read()

    async def _read(self) -> AsyncIterator[bytes]:
        while True:
            line = await self._lines.get()
            if line is None:
                return
            yield line


class FixedDelay:
    """Retry scheduler with a constant short delay."""

    def __init__(self) -> None:
        self.attempts = 0

    def next(self) -> timedelta:
        self.attempts += 1
        return timedelta(milliseconds=10)


class Pipeline:
    """The wired components under test."""

    def __init__(self, cluster: FakeCluster) -> None:
        self.cluster = cluster
        self.gate = ReadinessGate()
        self.resolver = TopologyResolver(
            cluster,
            self.gate,
            pod_name=POD_NAME,
            container_id="c0ffee",
            namespace=NAMESPACE,
            retry_backoff=FixedDelay,
        )
        self.environment = KubeEnvironment(self.resolver)
        self.watcher = WatchStreamClient(cluster.watch_pods, backoff=backoff_factory(0.001, 0.01))
        self._run_task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        self._run_task = asyncio.create_task(self.resolver.run(self.watcher.changes()))
        await self.watcher.start(NAMESPACE)

    async def stop(self) -> None:
        await self.watcher.stop()
        if self._run_task is not None:
            await asyncio.wait_for(self._run_task, timeout=2.0)


async def wait_until(predicate: Any, timeout: float = 2.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout=timeout)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def cluster() -> FakeCluster:
    return FakeCluster()


@pytest.fixture()
async def pipeline(cluster: FakeCluster) -> AsyncIterator[Pipeline]:
    wired = Pipeline(cluster)
    await wired.start()
    yield wired
    await wired.stop()
