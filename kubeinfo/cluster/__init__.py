"""Kubernetes API access (kubernetes-asyncio)."""

from kubeinfo.cluster.client import ClusterQueryClient

__all__ = ["ClusterQueryClient"]
