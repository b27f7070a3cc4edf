"""
Query subsystem boundary.

A QuerySource produces address records for one target and reports them to a
QueryListener from its own thread: records as they appear or disappear, a
terminal error, or the signal that no more results will come. Resolvers own
one source each and treat it as an opaque producer.

PollingQuerySource is the shared engine behind the concrete sources: it
looks up every requested family, reports differences against the previous
lookup, and repeats after the answer TTL until unsubscribed.
"""

import threading
from abc import ABC, abstractmethod
from typing import Iterable, Optional, Protocol, runtime_checkable

from .audit_logger import AuditLogger
from .address_classifier import address_family
from .enums import AddressFamily
from .exceptions import DomainNotFoundError, NoAddressRecordError
from .models import AddressRecord


@runtime_checkable
class QueryListener(Protocol):
    """Receives events from a query source."""

    @abstractmethod
    def on_record(self, record: AddressRecord) -> None:
        ...

    @abstractmethod
    def on_error(self, error: BaseException) -> None:
        ...

    @abstractmethod
    def on_no_more_results(self) -> None:
        ...


@runtime_checkable
class QuerySource(Protocol):
    """Protocol for the asynchronous producer of address records."""

    @abstractmethod
    def subscribe(
        self,
        target: str,
        families: frozenset,
        listener: QueryListener,
    ) -> None:
        """
        Start producing records for target.

        Must return without blocking; events arrive on the source's own
        thread. May raise if the query cannot even be started.
        """
        ...

    @abstractmethod
    def unsubscribe(self) -> None:
        """Stop producing records. Non-blocking and idempotent."""
        ...


# Family iteration order for lookups and emitted records.
FAMILY_ORDER = (AddressFamily.IPV4, AddressFamily.IPV6)


class PollingQuerySource(ABC):
    """
    Base class for sources that answer by repeated lookups.

    Subclasses implement _lookup(); everything else (the worker thread,
    diffing, refresh scheduling and terminal signalling) lives here.
    """

    component = "PollingQuerySource"

    def __init__(
        self,
        refresh_interval: Optional[float] = None,
        min_refresh: float = 1.0,
        max_refresh: float = 300.0,
        one_shot: bool = False,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the polling source.

        Args:
            refresh_interval: Fixed delay between lookups; None follows the TTL
            min_refresh: Lower bound for the delay between lookups
            max_refresh: Upper bound for the delay between lookups
            one_shot: Signal no-more-results after the first lookup
            logger: Optional audit logger
        """
        if min_refresh <= 0 or max_refresh < min_refresh:
            raise ValueError(
                f"Invalid refresh bounds: min={min_refresh}, max={max_refresh}"
            )
        self._refresh_interval = refresh_interval
        self._min_refresh = min_refresh
        self._max_refresh = max_refresh
        self._one_shot = one_shot
        self._logger = logger
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def subscribed(self) -> bool:
        return self._thread is not None and not self._stop.is_set()

    def subscribe(
        self,
        target: str,
        families: frozenset,
        listener: QueryListener,
    ) -> None:
        if not families:
            raise ValueError("At least one address family must be requested")
        with self._lock:
            if self._thread is not None:
                raise RuntimeError(f"{self.component} is already subscribed")
            self._thread = threading.Thread(
                target=self._run,
                args=(target, self._ordered(families), listener),
                name=f"{self.component}-{target}",
                daemon=True,
            )
            self._thread.start()

    def unsubscribe(self) -> None:
        self._stop.set()

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for the worker thread to exit (tests and shutdown)."""
        thread = self._thread
        if thread is not None:
            thread.join(timeout)

    @abstractmethod
    def _lookup(self, target: str, family: AddressFamily) -> tuple[list[str], Optional[int]]:
        """
        Look up the addresses of one family.

        Args:
            target: Canonical domain name
            family: Address family to look up

        Returns:
            Tuple of (addresses, smallest TTL or None); an empty list when
            the domain exists but has no record of this family

        Raises:
            DomainNotFoundError: If the domain does not exist
            QueryTimeoutError: If the lookup timed out
            QueryError: For any other lookup failure
        """
        ...

    def _prepare(self) -> None:
        """Hook run on the worker thread before the first lookup."""

    def _close(self) -> None:
        """Hook run on the worker thread when it exits."""

    def _next_delay(self, ttls: list[int]) -> float:
        if self._refresh_interval is not None:
            delay = self._refresh_interval
        elif ttls:
            delay = float(min(ttls))
        else:
            delay = self._max_refresh
        return min(max(delay, self._min_refresh), self._max_refresh)

    @staticmethod
    def _ordered(families: Iterable[AddressFamily]) -> tuple:
        wanted = set(families)
        return tuple(f for f in FAMILY_ORDER if f in wanted)

    def _run(self, target: str, families: tuple, listener: QueryListener) -> None:
        known: dict[str, AddressFamily] = {}
        first = True
        try:
            self._prepare()
            while not self._stop.is_set():
                current: dict[str, AddressFamily] = {}
                ttls: list[int] = []
                for family in families:
                    addresses, ttl = self._lookup(target, family)
                    for address in addresses:
                        current.setdefault(address, family)
                    if addresses and ttl is not None:
                        ttls.append(ttl)

                if self._stop.is_set():
                    return

                if first and not current:
                    raise NoAddressRecordError(
                        f"No address record for {target}",
                        details={
                            "target": target,
                            "families": [f.value for f in families],
                        },
                    )

                ttl = min(ttls) if ttls else None
                for address, family in current.items():
                    if address not in known:
                        listener.on_record(AddressRecord(address, family, True, ttl))
                for address, family in known.items():
                    if address not in current:
                        listener.on_record(AddressRecord(address, family, False))

                known = current
                first = False

                if self._one_shot:
                    listener.on_no_more_results()
                    return

                if self._stop.wait(self._next_delay(ttls)):
                    return
        except Exception as e:
            if self._stop.is_set():
                return
            if self._logger:
                self._logger.log_error(
                    self.component,
                    f"Lookup for {target} failed",
                    error=e,
                    additional_data={"target": target},
                )
            listener.on_error(e)
        finally:
            self._close()


class StaticQuerySource(PollingQuerySource):
    """
    Answers from an in-memory mapping of target to address list.

    Used by simulation mode and tests: no network requests are made.
    Targets missing from the mapping do not exist.
    """

    component = "StaticQuerySource"

    def __init__(
        self,
        records: dict[str, list[str]],
        delay: float = 0.0,
        finish: bool = True,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the static source.

        Args:
            records: Mapping of target to address literals
            delay: Seconds to wait before answering
            finish: Signal no-more-results after answering
            logger: Optional audit logger
        """
        super().__init__(one_shot=finish, logger=logger)
        self._records = {k.lower(): list(v) for k, v in records.items()}
        self._delay = delay

    def _prepare(self) -> None:
        if self._delay > 0:
            self._stop.wait(self._delay)

    def _lookup(self, target: str, family: AddressFamily) -> tuple[list[str], Optional[int]]:
        addresses = self._records.get(target.lower())
        if addresses is None:
            raise DomainNotFoundError(
                f"Domain not found: {target}",
                details={"target": target},
            )
        return [a for a in addresses if address_family(a) is family], None
