"""Point queries and the raw watch stream against the Kubernetes API.

Wraps kubernetes-asyncio's typed APIs. Results are converted back to their
camelCase JSON shape with ``ApiClient.sanitize_for_serialization`` and decoded
by the ``from_dict`` constructors in ``kubeinfo.models.resources`` so that
watch payloads and query results go through the same decoder.

Errors are not translated: callers see ``ApiException`` for HTTP failures
(including a rejected watch request) and aiohttp exceptions for transport
faults.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]
from kubernetes_asyncio.client.exceptions import ApiException  # type: ignore[import-untyped]

from kubeinfo.models.resources import KubeObject, Pod

_log = structlog.get_logger(component="cluster.client")

# Server-side watch timeout; the server closes the stream cleanly before the
# client-side request timeout fires.
_WATCH_TIMEOUT_SECONDS = 240


class ClusterQueryClient:
    """Query façade used by the topology resolver and the pod watcher."""

    def __init__(
        self,
        api_client: Any,
        *,
        namespace: str,
        pod_name: str,
        watch_timeout_seconds: int = _WATCH_TIMEOUT_SECONDS,
    ) -> None:
        self._api_client = api_client
        self._core = k8s_client.CoreV1Api(api_client)
        self._apps = k8s_client.AppsV1Api(api_client)
        self._namespace = namespace
        self._pod_name = pod_name
        self._watch_timeout_seconds = watch_timeout_seconds

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def pod_name(self) -> str:
        return self._pod_name

    async def get_own_pod(self) -> Pod:
        """Read the Pod hosting this process."""
        pod = await self._core.read_namespaced_pod(name=self._pod_name, namespace=self._namespace)
        return Pod.from_dict(self._to_dict(pod))

    async def list_replica_sets(self, namespace: str) -> list[KubeObject]:
        result = await self._apps.list_namespaced_replica_set(namespace)
        return [KubeObject.from_dict(self._to_dict(item), kind="ReplicaSet") for item in result.items or []]

    async def list_deployments(self, namespace: str) -> list[KubeObject]:
        result = await self._apps.list_namespaced_deployment(namespace)
        return [KubeObject.from_dict(self._to_dict(item), kind="Deployment") for item in result.items or []]

    async def list_nodes(self) -> list[KubeObject]:
        result = await self._core.list_node()
        return [KubeObject.from_dict(self._to_dict(item), kind="Node") for item in result.items or []]

    @asynccontextmanager
    async def watch_pods(self, namespace: str) -> AsyncIterator[AsyncIterator[bytes]]:
        """Open ``GET /api/v1/namespaces/{namespace}/pods?watch=true``.

        Yields an async iterator over the raw newline-delimited body. The
        underlying connection is closed when the context exits, including on
        cancellation.
        """
        response = await self._core.list_namespaced_pod(
            namespace,
            watch=True,
            timeout_seconds=self._watch_timeout_seconds,
            _preload_content=False,
        )
        _log.debug("watch_response_opened", namespace=namespace, status=response.status)
        if not 200 <= response.status <= 299:
            # _preload_content=False bypasses the client's own status check.
            try:
                body = await response.text()
            finally:
                response.close()
            exc = ApiException(status=response.status, reason=response.reason)
            exc.body = body
            raise exc
        try:
            yield _iter_lines(response)
        finally:
            response.close()

    def _to_dict(self, model: object) -> dict[str, Any]:
        data = self._api_client.sanitize_for_serialization(model)
        return data if isinstance(data, dict) else {}


async def _iter_lines(response: Any) -> AsyncIterator[bytes]:
    async for line in response.content:
        yield line
