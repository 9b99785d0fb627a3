"""Shared builders for kubeinfo unit tests.

Resources are built from the camelCase JSON shape the API server returns, so
the same builders feed both watch-line tests and resolver tests.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from kubeinfo.models.resources import KubeObject, Pod

# ---------------------------------------------------------------------------
# Raw resource dicts
# ---------------------------------------------------------------------------

POD_NAME = "web-7b4f8c6d5-x2kj9"
POD_UID = "pod-uid-1"
NAMESPACE = "shop"
CONTAINER_ID = "3f1c2b9e0a7d"


def owner(kind: str, uid: str, name: str = "") -> dict[str, str]:
    return {"apiVersion": "apps/v1", "kind": kind, "uid": uid, "name": name or f"{kind.lower()}-{uid}"}


def pod_dict(
    name: str = POD_NAME,
    uid: str = POD_UID,
    rv: str = "1",
    namespace: str = NAMESPACE,
    node_name: str = "node-a",
    owners: list[dict[str, str]] | None = None,
    labels: dict[str, str] | None = None,
    containers: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    if containers is None:
        containers = [
            {
                "name": "web",
                "containerID": f"containerd://{CONTAINER_ID}",
                "image": "shop/web:1.4",
                "ready": True,
            }
        ]
    return {
        "kind": "Pod",
        "apiVersion": "v1",
        "metadata": {
            "name": name,
            "uid": uid,
            "namespace": namespace,
            "resourceVersion": rv,
            "labels": labels if labels is not None else {"app": "web", "tier": "frontend"},
            "ownerReferences": owners if owners is not None else [owner("ReplicaSet", "rs-uid-1", "web-7b4f8c6d5")],
        },
        "spec": {"nodeName": node_name, "containers": [{"name": c["name"]} for c in containers]},
        "status": {"phase": "Running", "containerStatuses": containers},
    }


def object_dict(kind: str, name: str, uid: str, owners: list[dict[str, str]] | None = None) -> dict[str, Any]:
    return {
        "kind": kind,
        "metadata": {"name": name, "uid": uid, "ownerReferences": owners or []},
    }


def make_pod(**kwargs: Any) -> Pod:
    return Pod.from_dict(pod_dict(**kwargs))


def make_object(kind: str, name: str, uid: str, owners: list[dict[str, str]] | None = None) -> KubeObject:
    return KubeObject.from_dict(object_dict(kind, name, uid, owners))


def watch_line(event_type: str = "ADDED", obj: dict[str, Any] | None = None) -> bytes:
    return (json.dumps({"type": event_type, "object": obj if obj is not None else pod_dict()}) + "\n").encode()


# ---------------------------------------------------------------------------
# Query client and stream doubles
# ---------------------------------------------------------------------------


def make_query_client(
    pod: Pod | None = None,
    replica_sets: list[KubeObject] | None = None,
    deployments: list[KubeObject] | None = None,
    nodes: list[KubeObject] | None = None,
) -> MagicMock:
    """AsyncMock-backed query client returning a full Pod -> RS -> Deployment chain by default."""
    client = MagicMock()
    client.get_own_pod = AsyncMock(return_value=pod or make_pod())
    client.list_replica_sets = AsyncMock(
        return_value=replica_sets
        if replica_sets is not None
        else [
            make_object("ReplicaSet", "other-rs", "rs-uid-0"),
            make_object("ReplicaSet", "web-7b4f8c6d5", "rs-uid-1", [owner("Deployment", "dep-uid-1", "web")]),
        ]
    )
    client.list_deployments = AsyncMock(
        return_value=deployments
        if deployments is not None
        else [make_object("Deployment", "other", "dep-uid-0"), make_object("Deployment", "web", "dep-uid-1")]
    )
    client.list_nodes = AsyncMock(
        return_value=nodes
        if nodes is not None
        else [make_object("Node", "node-b", "node-uid-b"), make_object("Node", "Node-A", "node-uid-a")]
    )
    return client


async def _lines(items: Iterable[bytes]) -> AsyncIterator[bytes]:
    for item in items:
        yield item


async def _hang() -> AsyncIterator[bytes]:
    await asyncio.Event().wait()
    yield b""  # pragma: no cover


class FakeStreams:
    """Stream opener replaying scripted connections.

    Each script entry is either a list of raw lines (the connection ends after
    the last line) or an exception raised while connecting. Once the script
    is exhausted, connections stay open forever without data.
    """

    def __init__(self, *script: list[bytes] | Exception) -> None:
        self._script = list(script)
        self.namespaces: list[str] = []
        self.closed = 0

    @property
    def opened(self) -> int:
        return len(self.namespaces)

    @asynccontextmanager
    async def __call__(self, namespace: str) -> AsyncIterator[AsyncIterator[bytes]]:
        self.namespaces.append(namespace)
        entry = self._script.pop(0) if self._script else None
        if isinstance(entry, Exception):
            raise entry
        try:
            yield _hang() if entry is None else _lines(entry)
        finally:
            self.closed += 1


async def take(changes: AsyncIterator[Any], count: int, timeout: float = 2.0) -> list[Any]:
    """Collect *count* items from an async iterator, failing after *timeout*."""
    collected: list[Any] = []

    async def _collect() -> None:
        async for item in changes:
            collected.append(item)
            if len(collected) == count:
                return

    await asyncio.wait_for(_collect(), timeout=timeout)
    return collected


async def wait_until(predicate: Any, timeout: float = 2.0) -> None:
    """Poll *predicate* on the event loop until it is truthy."""

    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout=timeout)


@pytest.fixture()
def query_client() -> MagicMock:
    return make_query_client()
