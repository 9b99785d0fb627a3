"""Application bootstrap for kubeinfo.

Wires all components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → K8s client → query client → gate
              → resolver → pod watcher → REST

Shutdown is graceful: components are stopped in reverse startup order, and
each stop error is caught and logged independently.
"""

from __future__ import annotations

import asyncio
import signal
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from kubeinfo.collector.backoff import backoff_factory
from kubeinfo.collector.watcher import WatchStreamClient
from kubeinfo.config import in_cluster, load_config
from kubeinfo.models.config import KubeInfoConfig
from kubeinfo.observability.logging import get_logger, setup_logging
from kubeinfo.topology.environment import KubeEnvironment
from kubeinfo.topology.readiness import ReadinessGate
from kubeinfo.topology.resolver import TopologyResolver

if TYPE_CHECKING:
    import structlog

    from kubeinfo.cluster.client import ClusterQueryClient

_SHUTDOWN_GRACE_SECONDS = 15


class ComponentStartError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


async def create_api_client() -> Any:
    """Configure kubernetes-asyncio from the in-cluster service account or kubeconfig."""
    import kubernetes_asyncio.config as k8s_config  # type: ignore[import-untyped]
    from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

    try:
        # load_incluster_config() is synchronous in kubernetes-asyncio
        k8s_config.load_incluster_config()
    except k8s_config.ConfigException:
        # load_kube_config() is async in kubernetes-asyncio
        await k8s_config.load_kube_config()
    return k8s_client.ApiClient()


class KubeInfoApp:
    """Application root. Owns every component and coordinates their lifecycle.

    ``stop()`` is safe to call on an app that never started or already
    stopped.
    """

    def __init__(self, config: KubeInfoConfig | None = None) -> None:
        self.config = config
        self.environment: KubeEnvironment | None = None

        self._api_client: Any = None
        self._query_client: ClusterQueryClient | None = None
        self._gate: ReadinessGate | None = None
        self._resolver: TopologyResolver | None = None
        self._watcher: WatchStreamClient | None = None
        self._rest_server: Any = None

        # Background tasks that must be cancelled on shutdown
        self._background_tasks: list[asyncio.Task[None]] = []

        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    @property
    def running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises ComponentStartError if the Kubernetes client cannot be
        configured. Outside a cluster (and with the cluster check enabled)
        the app starts idle: no watch runs and the gate never opens.
        """
        # --- 1. Configuration -------------------------------------------
        if self.config is None:
            self.config = load_config()

        # --- 2. Logging -------------------------------------------------
        setup_logging(self.config.log.level, self.config.log.format)
        self._log = get_logger("app")
        self._log.info("kubeinfo starting", version=_kubeinfo_version())

        # --- 3. Readiness gate and resolver ------------------------------
        self._gate = ReadinessGate()

        if self.config.cluster_check_enabled and not in_cluster():
            self._log.warning("not running inside kubernetes; topology discovery disabled")
            self.environment = KubeEnvironment(
                TopologyResolver(_NullQueryClient(), self._gate, pod_name=""),
                init_timeout=timedelta(seconds=self.config.initialization_timeout_seconds),
            )
            await self._start_rest()
            self._running = True
            return

        # --- 4. Kubernetes client ----------------------------------------
        await self._start_k8s_client()

        # --- 5. Resolver and environment handle --------------------------
        self._start_resolver()

        # --- 6. Pod watcher ----------------------------------------------
        await self._start_watcher()

        # --- 7. REST API ------------------------------------------------
        await self._start_rest()

        self._running = True
        self._log.info(
            "kubeinfo started",
            namespace=self.config.identity.namespace,
            pod=self.config.identity.pod_name,
        )

    async def _start_k8s_client(self) -> None:
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting k8s client")
        try:
            from kubeinfo.cluster.client import ClusterQueryClient

            self._api_client = await create_api_client()
            self._query_client = ClusterQueryClient(
                self._api_client,
                namespace=self.config.identity.namespace,
                pod_name=self.config.identity.pod_name,
            )
            self._log.info("k8s client configured")
        except Exception as exc:
            raise ComponentStartError("k8s_client", exc) from exc

    def _start_resolver(self) -> None:
        assert self.config is not None
        assert self._gate is not None
        assert self._query_client is not None
        identity = self.config.identity
        self._resolver = TopologyResolver(
            self._query_client,
            self._gate,
            pod_name=identity.pod_name,
            container_id=identity.container_id,
            namespace=identity.namespace,
            retry_backoff=backoff_factory(
                self.config.resolver.retry_base_seconds,
                self.config.resolver.retry_max_seconds,
            ),
        )
        self.environment = KubeEnvironment(
            self._resolver,
            init_timeout=timedelta(seconds=self.config.initialization_timeout_seconds),
        )

    async def _start_watcher(self) -> None:
        assert self._log is not None
        assert self.config is not None
        assert self._query_client is not None
        assert self._resolver is not None
        self._watcher = WatchStreamClient(
            self._query_client.watch_pods,
            kind="Pod",
            backoff=backoff_factory(
                self.config.watch.backoff_base_seconds,
                self.config.watch.backoff_max_seconds,
            ),
        )
        task = asyncio.create_task(self._resolver.run(self._watcher.changes()), name="topology-resolver-run")
        self._background_tasks.append(task)
        await self._watcher.start(self.config.identity.namespace)

    async def _start_rest(self) -> None:
        """Start the uvicorn status server."""
        assert self._log is not None
        assert self.config is not None
        if not self.config.api.enabled:
            self._log.info("rest api disabled")
            return
        self._log.debug("starting rest api")
        try:
            import uvicorn

            from kubeinfo.api import create_app

            fastapi_app = create_app(environment=self.environment, config=self.config)
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host="0.0.0.0",
                port=self.config.api.port,
                log_config=None,  # structlog handles all logging
                access_log=False,
            )
            server = uvicorn.Server(uv_config)
            task = asyncio.create_task(server.serve(), name="rest-server")
            self._background_tasks.append(task)
            self._rest_server = server
            self._log.info("rest api started", port=self.config.api.port)
        except Exception as exc:
            raise ComponentStartError("rest", exc) from exc

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Gracefully stop all components in reverse startup order."""
        if not self._running and self._log is None:
            return

        log = self._log or get_logger("app")
        log.info("kubeinfo shutting down")
        self._running = False

        if self._rest_server is not None:
            self._rest_server.should_exit = True

        # Stopping the watcher closes the change channel, which lets the
        # resolver task drain and finish on its own.
        await self._stop_component("watcher", self._watcher)

        if self._background_tasks:
            try:
                await asyncio.wait_for(
                    asyncio.gather(*self._background_tasks, return_exceptions=True),
                    timeout=_SHUTDOWN_GRACE_SECONDS,
                )
            except TimeoutError:
                log.warning("background tasks did not finish in time", timeout=_SHUTDOWN_GRACE_SECONDS)
                for task in self._background_tasks:
                    task.cancel()
                await asyncio.gather(*self._background_tasks, return_exceptions=True)
        self._background_tasks.clear()

        await self._stop_k8s_client()
        log.info("kubeinfo stopped")

    async def _stop_component(self, name: str, component: object | None) -> None:
        """Call stop() on a component if it has that method, catching all errors."""
        if component is None:
            return
        log = self._log or get_logger("app")
        stop_fn = getattr(component, "stop", None)
        if stop_fn is None:
            return
        try:
            result = stop_fn()
            if asyncio.iscoroutine(result):
                await asyncio.wait_for(result, timeout=_SHUTDOWN_GRACE_SECONDS)
        except TimeoutError:
            log.warning("component stop timed out", component=name, timeout=_SHUTDOWN_GRACE_SECONDS)
        except Exception as exc:
            log.error("component stop raised an error", component=name, error=str(exc))

    async def _stop_k8s_client(self) -> None:
        """Close the kubernetes-asyncio ApiClient connection pool."""
        if self._api_client is None:
            return
        log = self._log or get_logger("app")
        try:
            await self._api_client.close()
        except Exception as exc:
            log.debug("k8s client close raised (non-fatal)", error=str(exc))
        self._api_client = None


class _NullQueryClient:
    """Stand-in used when topology discovery is disabled; every query fails."""

    async def get_own_pod(self) -> Any:
        raise RuntimeError("topology discovery is disabled outside kubernetes")

    async def list_replica_sets(self, namespace: str) -> list[Any]:
        return []

    async def list_deployments(self, namespace: str) -> list[Any]:
        return []

    async def list_nodes(self) -> list[Any]:
        return []


def _kubeinfo_version() -> str:
    from kubeinfo import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main() -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    app = KubeInfoApp()
    loop = asyncio.get_running_loop()
    shutdown = asyncio.Event()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, shutdown.set)

    try:
        await app.start()
        await shutdown.wait()
    except ComponentStartError as exc:
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        raise SystemExit(1) from exc
    finally:
        await app.stop()
