"""Prometheus metrics for the watch and resolution pipeline."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

watch_events_total = Counter(
    "kubeinfo_watch_events_total",
    "Watch stream lines by processing outcome",
    ["kind", "outcome"],  # outcome: changed | duplicate | unidentified | decode_error
)

watch_reconnects_total = Counter(
    "kubeinfo_watch_reconnects_total",
    "Watch stream reconnect attempts",
    ["kind", "reason"],  # reason: stream_end | transport_error
)

resolutions_total = Counter(
    "kubeinfo_resolutions_total",
    "Topology resolution passes",
    ["result"],  # result: success | failure
)

resolution_duration_seconds = Histogram(
    "kubeinfo_resolution_duration_seconds",
    "Wall time of a topology resolution pass",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

topology_ready = Gauge(
    "kubeinfo_topology_ready",
    "1 when a topology snapshot has been published and the readiness gate is open",
)
