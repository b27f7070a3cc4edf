"""
Delivery queues for resolver callbacks.

A DeliveryQueue runs zero-argument work units one at a time, in submission
order, on an executor of its own. Resolvers submit callback invocations to
it while holding their lock, so submit() must never run the work inline.
"""

import asyncio
import queue
import threading
from abc import abstractmethod
from typing import Callable, Optional, Protocol, runtime_checkable

from .audit_logger import AuditLogger


@runtime_checkable
class DeliveryQueue(Protocol):
    """Protocol for the execution context callbacks are delivered on."""

    @abstractmethod
    def submit(self, work: Callable[[], None]) -> None:
        """
        Schedule work to run after everything submitted before it.

        Args:
            work: Zero-argument callable
        """
        ...


class SerialDispatchQueue:
    """
    FIFO queue drained by one daemon worker thread.

    Exceptions raised by a work unit are logged and do not stop the worker,
    so one failing callback cannot starve the ones queued behind it.
    """

    _STOP = object()

    def __init__(
        self,
        name: str = "domain-resolver",
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._name = name
        self._logger = logger
        self._queue: "queue.Queue" = queue.Queue()
        self._closed = False
        self._lock = threading.Lock()
        self._thread = threading.Thread(
            target=self._run,
            name=f"{name}-dispatch",
            daemon=True,
        )
        self._thread.start()

    @property
    def name(self) -> str:
        return self._name

    @property
    def closed(self) -> bool:
        return self._closed

    def submit(self, work: Callable[[], None]) -> None:
        with self._lock:
            if self._closed:
                raise RuntimeError(f"Dispatch queue {self._name!r} is closed")
            self._queue.put(work)

    def is_current(self) -> bool:
        """True when called from this queue's worker thread."""
        return threading.current_thread() is self._thread

    def close(self) -> None:
        """Stop accepting work; queued work still runs."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(self._STOP)

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the worker to finish after close(). Returns True if it did."""
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def drain(self, timeout: Optional[float] = None) -> bool:
        """
        Block until everything submitted so far has run.

        Raises:
            RuntimeError: If called from a work unit on this queue
        """
        if self.is_current():
            raise RuntimeError(f"Cannot drain {self._name!r} from its own worker")
        done = threading.Event()
        self.submit(done.set)
        return done.wait(timeout)

    def _run(self) -> None:
        while True:
            work = self._queue.get()
            if work is self._STOP:
                return
            try:
                work()
            except Exception as e:
                if self._logger:
                    self._logger.log_error(
                        "SerialDispatchQueue",
                        f"Work unit on {self._name!r} raised",
                        error=e,
                    )


class LoopDispatchQueue:
    """Delivers work onto an asyncio event loop from any thread."""

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def submit(self, work: Callable[[], None]) -> None:
        # call_soon_threadsafe keeps FIFO order for callbacks from any thread.
        self._loop.call_soon_threadsafe(work)


_main_queue: Optional[SerialDispatchQueue] = None
_main_queue_lock = threading.Lock()


def main_queue() -> SerialDispatchQueue:
    """The process-wide default queue, created on first use."""
    global _main_queue
    with _main_queue_lock:
        if _main_queue is None or _main_queue.closed:
            _main_queue = SerialDispatchQueue(name="main")
        return _main_queue
