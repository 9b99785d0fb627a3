"""WatchStreamClient: persistent watch stream with change detection and reconnect.

One long-lived asyncio task per client reads the newline-delimited JSON watch
body. Each line is decoded on its own; a line that fails to decode is logged
and skipped without tearing down the connection. Distinct object generations
(per VersionTracker) are published to an unbounded channel consumed through
``changes()``, so slow consumers never stall the stream reader.

When the stream ends or the transport fails, the client waits the next
BackoffScheduler delay and reconnects, indefinitely, until ``stop()``. The
scheduler is replaced with a fresh one as soon as a connection delivers a
valid event, so delays only grow across back-to-back failures.

State machine::

    IDLE -> CONNECTING -> STREAMING -> RECONNECTING -> CONNECTING ...
                                    \\-> STOPPED (on stop())
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager
from enum import StrEnum

import structlog

from kubeinfo.collector.backoff import BackoffScheduler, backoff_factory
from kubeinfo.collector.version_tracker import VersionTracker
from kubeinfo.models.resources import ChangeNotification, DecodeError, EventType, WatchEvent
from kubeinfo.observability.metrics import watch_events_total, watch_reconnects_total

_log = structlog.get_logger(component="collector.watcher")

_PREVIEW_CHARS = 200

# namespace -> async context manager yielding the raw lines of one watch response
StreamOpener = Callable[[str], AbstractAsyncContextManager[AsyncIterator[bytes]]]


class WatchState(StrEnum):
    """Lifecycle state of a WatchStreamClient."""

    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    RECONNECTING = "reconnecting"
    STOPPED = "stopped"


class _EndOfChanges:
    """Sentinel placed on the channel by ``stop()``."""


_END = _EndOfChanges()


class WatchStreamClient:
    """Watches one resource kind in one namespace and emits change notifications."""

    def __init__(
        self,
        open_stream: StreamOpener,
        *,
        kind: str = "Pod",
        backoff: Callable[[], BackoffScheduler] | None = None,
    ) -> None:
        self._open_stream = open_stream
        self._kind = kind
        self._backoff_factory = backoff or backoff_factory(5.0, 300.0)
        self._backoff = self._backoff_factory()
        self._tracker = VersionTracker()
        self._channel: asyncio.Queue[ChangeNotification | _EndOfChanges] = asyncio.Queue()
        self._namespace = ""
        self._state = WatchState.IDLE
        self._running = False
        self._consumed = False
        self._task: asyncio.Task[None] | None = None
        self._log = _log.bind(kind=kind)

    @property
    def kind(self) -> str:
        return self._kind

    @property
    def state(self) -> WatchState:
        return self._state

    @property
    def tracker(self) -> VersionTracker:
        return self._tracker

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, namespace: str) -> None:
        """Spawn the watch task for *namespace*. Returns immediately."""
        if self._state is WatchState.STOPPED:
            raise RuntimeError("a stopped watch client cannot be restarted")
        if self._running:
            self._log.warning("watch_already_running", namespace=self._namespace)
            return

        self._namespace = namespace
        self._running = True
        self._task = asyncio.create_task(self._watch_loop(), name=f"watch-{self._kind.lower()}")
        self._log.info("watch_started", namespace=namespace)

    async def stop(self) -> None:
        """Cancel the watch task and close the change channel.

        Cancellation interrupts a blocked stream read or a pending backoff
        sleep immediately; the open connection is released on the way out.
        """
        if self._state is WatchState.STOPPED:
            return

        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        self._state = WatchState.STOPPED
        self._channel.put_nowait(_END)
        self._log.info("watch_stopped", tracked_objects=len(self._tracker))

    async def changes(self) -> AsyncIterator[ChangeNotification]:
        """Yield change notifications until the client is stopped.

        The sequence is single-consumer and cannot be restarted.
        """
        if self._consumed:
            raise RuntimeError("change notifications can only be consumed once")
        self._consumed = True
        while True:
            item = await self._channel.get()
            if isinstance(item, _EndOfChanges):
                return
            yield item

    # ------------------------------------------------------------------
    # Watch loop
    # ------------------------------------------------------------------

    async def _watch_loop(self) -> None:
        """Outer retry loop: run one stream, then back off and reconnect."""
        while self._running:
            reason = "stream_end"
            try:
                await self._run_watch()
            except Exception as exc:
                if not self._running:
                    return
                reason = "transport_error"
                self._log.warning("watch_stream_failed", namespace=self._namespace, error=str(exc))

            if not self._running:
                return
            await self._wait_before_reconnect(reason)

    async def _run_watch(self) -> None:
        """Read one watch response until it ends."""
        self._state = WatchState.CONNECTING
        self._log.debug("watch_connecting", namespace=self._namespace)

        async with self._open_stream(self._namespace) as lines:
            self._state = WatchState.STREAMING
            self._log.info("watch_connected", namespace=self._namespace)
            async for line in lines:
                if not self._running:
                    return
                notification = self._process_line(line)
                if notification is not None:
                    self._channel.put_nowait(notification)

        self._log.info("watch_stream_ended", namespace=self._namespace)

    async def _wait_before_reconnect(self, reason: str) -> None:
        self._state = WatchState.RECONNECTING
        delay = self._backoff.next()
        watch_reconnects_total.labels(kind=self._kind, reason=reason).inc()
        self._log.info(
            "watch_reconnect_scheduled",
            reason=reason,
            attempt=self._backoff.attempts,
            delay_seconds=delay.total_seconds(),
        )
        await asyncio.sleep(delay.total_seconds())

    def _reset_backoff(self) -> None:
        if self._backoff.attempts:
            self._backoff = self._backoff_factory()

    # ------------------------------------------------------------------
    # Per-line processing
    # ------------------------------------------------------------------

    def _process_line(self, line: bytes | str) -> ChangeNotification | None:
        """Decode one line and classify it; returns a notification for real changes."""
        if not line.strip():
            return None

        try:
            event = WatchEvent.from_line(line)
        except DecodeError as exc:
            watch_events_total.labels(kind=self._kind, outcome="decode_error").inc()
            self._log.warning("watch_line_decode_failed", error=str(exc), line=_preview(line))
            return None

        if event.event_type == EventType.ERROR:
            watch_events_total.labels(kind=self._kind, outcome="unidentified").inc()
            self._log.warning(
                "watch_error_event",
                reason=event.object.get("reason", ""),
                message=event.object.get("message", ""),
            )
            return None

        uid = event.uid
        version = event.resource_version
        if not uid or not version:
            watch_events_total.labels(kind=self._kind, outcome="unidentified").inc()
            self._log.debug("watch_object_unidentified", event_type=event.event_type, uid=uid, version=version)
            return None

        # A valid object event proves the connection is healthy.
        self._reset_backoff()

        if not self._tracker.observe(uid, version):
            watch_events_total.labels(kind=self._kind, outcome="duplicate").inc()
            return None

        watch_events_total.labels(kind=self._kind, outcome="changed").inc()
        notification = ChangeNotification(
            event_type=event.event_type,
            uid=uid,
            kind=event.kind or self._kind,
            name=event.name,
            resource_version=version,
            object=event.object,
        )
        self._log.debug(
            "watch_object_changed",
            event_type=notification.event_type,
            uid=uid,
            name=notification.name,
            resource_version=version,
        )
        return notification


def _preview(line: bytes | str) -> str:
    text = line.decode("utf-8", errors="replace") if isinstance(line, bytes) else line
    return text[:_PREVIEW_CHARS]
