"""kubeinfo command-line interface.

Exposes:
    cli -- Click group entry point (registered as ``kubeinfo`` script).
"""

from kubeinfo.cli.main import cli

__all__ = ["cli"]
