"""
Timer scheduling for resolvers.

Resolvers arm their wait, update and cancel timers through a TimerScheduler,
which keeps the lifecycle logic independent of the clock and lets tests
fire timers by hand.
"""

import threading
from abc import abstractmethod
from typing import Callable, Protocol, runtime_checkable


@runtime_checkable
class TimerHandle(Protocol):
    """A pending timer."""

    @abstractmethod
    def cancel(self) -> None:
        """Disarm the timer. A timer already firing may still run."""
        ...


@runtime_checkable
class TimerScheduler(Protocol):
    """Arms one-shot timers."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """
        Run callback once after delay seconds, on a thread of the scheduler.

        Args:
            delay: Delay in seconds (> 0)
            callback: Zero-argument callable

        Returns:
            Handle that can disarm the timer
        """
        ...


class ThreadingTimerScheduler:
    """One daemon threading.Timer per armed timer."""

    def __init__(self, name: str = "domain-resolver-timer") -> None:
        self._name = name

    def call_later(self, delay: float, callback: Callable[[], None]) -> threading.Timer:
        if delay <= 0:
            raise ValueError(f"Timer delay must be positive, got {delay}")
        timer = threading.Timer(delay, callback)
        timer.name = self._name
        timer.daemon = True
        timer.start()
        return timer


_default_scheduler = ThreadingTimerScheduler()


def default_scheduler() -> ThreadingTimerScheduler:
    return _default_scheduler
