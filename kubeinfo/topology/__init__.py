"""Topology resolution, publication, and readiness gating."""

from kubeinfo.topology.environment import KubeEnvironment
from kubeinfo.topology.readiness import ReadinessGate
from kubeinfo.topology.resolver import TopologyResolver

__all__ = ["KubeEnvironment", "ReadinessGate", "TopologyResolver"]
