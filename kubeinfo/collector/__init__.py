"""Collector package for kubeinfo.

Submodules
----------
backoff         -- BackoffScheduler: exponential reconnect/retry delays.
version_tracker -- VersionTracker: change-versus-duplicate classification by uid.
watcher         -- WatchStreamClient: persistent watch stream with reconnect.
"""

from kubeinfo.collector.backoff import BackoffScheduler
from kubeinfo.collector.version_tracker import VersionTracker
from kubeinfo.collector.watcher import WatchState, WatchStreamClient

__all__ = ["BackoffScheduler", "VersionTracker", "WatchState", "WatchStreamClient"]
