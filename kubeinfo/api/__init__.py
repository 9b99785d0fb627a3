"""Status API for kubeinfo.

Exposes:
    create_app -- FastAPI application factory.
"""

from kubeinfo.api.app import create_app

__all__ = ["create_app"]
