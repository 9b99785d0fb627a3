"""ReadinessGate: lets consumers wait, bounded by a timeout, for the first snapshot."""

from __future__ import annotations

import asyncio
from datetime import timedelta

from kubeinfo.observability.metrics import topology_ready


class ReadinessGate:
    """Manual-reset gate built on ``asyncio.Event``.

    Starts closed. ``signal_ready()`` releases every current and future
    waiter at once; ``signal_not_ready()`` closes the gate again so later
    ``await_ready()`` calls block. The process-wide ready gauge only moves
    on these signals, never on construction.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def is_ready(self) -> bool:
        return self._event.is_set()

    def signal_ready(self) -> None:
        self._event.set()
        topology_ready.set(1)

    def signal_not_ready(self) -> None:
        self._event.clear()
        topology_ready.set(0)

    async def await_ready(self, timeout: float | timedelta | None = None) -> bool:
        """Wait until the gate opens.

        Args:
            timeout: seconds (or a timedelta) to wait; ``None`` waits forever.

        Returns:
            True if the gate opened before the timeout, False otherwise.
        """
        if self._event.is_set():
            return True
        seconds = timeout.total_seconds() if isinstance(timeout, timedelta) else timeout
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except TimeoutError:
            return False
        return True
