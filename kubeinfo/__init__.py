"""kubeinfo: Kubernetes workload topology for the current process."""

__version__ = "0.1.0"
