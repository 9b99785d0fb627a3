"""Exponential retry delays for failing operations."""

from __future__ import annotations

from collections.abc import Callable
from datetime import timedelta


class BackoffScheduler:
    """Yields ``base_seconds ** n`` for the n-th call, clamped at *maximum*.

    ``BackoffScheduler(timedelta(seconds=5), timedelta(minutes=5))`` yields
    5s, 25s, 125s, 300s, 300s, ...

    The attempt counter never resets; build a new scheduler to start over.
    """

    def __init__(self, base: timedelta, maximum: timedelta) -> None:
        if base <= timedelta(0):
            raise ValueError(f"backoff base must be positive, got {base}")
        if maximum < timedelta(0):
            raise ValueError(f"backoff maximum must not be negative, got {maximum}")
        self._base_seconds = base.total_seconds()
        self._maximum = maximum
        self._attempts = 0
        self._clamped = False

    @property
    def attempts(self) -> int:
        """Number of delays handed out so far."""
        return self._attempts

    def next(self) -> timedelta:
        """Return the delay for the next attempt."""
        self._attempts += 1
        if self._clamped:
            return self._maximum
        try:
            seconds = self._base_seconds**self._attempts
        except OverflowError:
            seconds = float("inf")
        if seconds >= self._maximum.total_seconds():
            self._clamped = True
            return self._maximum
        return timedelta(seconds=seconds)


def backoff_factory(base_seconds: float, max_seconds: float) -> Callable[[], BackoffScheduler]:
    """Return a zero-argument callable building fresh schedulers with fixed bounds."""

    def _make() -> BackoffScheduler:
        return BackoffScheduler(timedelta(seconds=base_seconds), timedelta(seconds=max_seconds))

    return _make
