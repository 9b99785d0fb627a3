"""Click commands: run the long-lived service or resolve the topology once."""

from __future__ import annotations

import asyncio
import json
import sys

import click

from kubeinfo.config import load_config
from kubeinfo.observability.logging import get_logger, setup_logging
from kubeinfo.topology.readiness import ReadinessGate
from kubeinfo.topology.resolver import TopologyResolver


@click.group()
@click.version_option(package_name="kubeinfo")
def cli() -> None:
    """Discover the Kubernetes workload hosting this process."""


@cli.command()
def run() -> None:
    """Watch the own Pod and serve the status API until SIGTERM."""
    from kubeinfo.app import main

    asyncio.run(main())


@cli.command()
@click.option("--namespace", "-n", default=None, help="Namespace of the Pod (default: from config).")
@click.option("--pod-name", default=None, help="Name of the Pod (default: KUBEINFO_POD_NAME or HOSTNAME).")
@click.option("--container-id", default=None, help="Container id to match in the Pod's container statuses.")
@click.option("--timeout", default=10.0, show_default=True, help="Seconds to wait for the resolution.")
def resolve(namespace: str | None, pod_name: str | None, container_id: str | None, timeout: float) -> None:
    """Resolve the topology once and print it as JSON attributes."""
    config = load_config()
    setup_logging(config.log.level, config.log.format)
    identity = config.identity
    namespace = namespace or identity.namespace
    pod_name = pod_name or identity.pod_name
    container_id = container_id if container_id is not None else identity.container_id

    if not pod_name:
        raise click.UsageError("a pod name is required (--pod-name, KUBEINFO_POD_NAME or HOSTNAME)")

    try:
        attributes = asyncio.run(_resolve_once(namespace, pod_name, container_id, timeout))
    except Exception as exc:
        get_logger("cli").error("resolve_failed", error=str(exc), error_type=type(exc).__name__)
        click.echo(f"error: {exc}", err=True)
        sys.exit(1)

    click.echo(json.dumps(attributes, indent=2, sort_keys=True))


async def _resolve_once(namespace: str, pod_name: str, container_id: str, timeout: float) -> dict[str, str]:
    from kubeinfo.app import create_api_client
    from kubeinfo.cluster.client import ClusterQueryClient

    api_client = await create_api_client()
    try:
        query_client = ClusterQueryClient(api_client, namespace=namespace, pod_name=pod_name)
        resolver = TopologyResolver(
            query_client,
            ReadinessGate(),
            pod_name=pod_name,
            container_id=container_id,
            namespace=namespace,
        )
        snapshot = await asyncio.wait_for(resolver.resolve_once(), timeout=timeout)
        return snapshot.as_attributes()
    finally:
        await api_client.close()
