"""
Resolution lifecycle controller.

A Resolver owns one resolution attempt for one target (a domain name or an
IP address literal). It drives a query source, filters and deduplicates the
addresses it reports, arms the wait, update and cancel timers, and turns
all of that into an ordered sequence of callback invocations:

- callback(resolver, None, [addresses...]) for every delivery of the full
  current address list;
- callback(resolver, error, []) once, when the resolver is canceled by a
  ResolverError;
- callback(resolver, None, []) once, when the caller cancels a resolver
  that never delivered anything.

An empty address list always means the resolver is no longer active and
the callback will not be called again.

Every event (source record, source error, timer firing, cancel()) runs
through one lock per resolver. Callbacks are submitted to the delivery
queue while that lock is held, which fixes their order, but they run on
the queue's own executor, never under the lock. cancel() may therefore be
called from inside the callback.
"""

import threading
from typing import Callable, Optional

from .address_classifier import (
    address_family,
    is_ip_address,
    is_ipv4_address,
    is_ipv6_address,
    normalize_target,
    requested_families,
)
from .audit_logger import AuditLogger
from .dispatch import DeliveryQueue, SerialDispatchQueue, main_queue
from .system_source import SystemQuerySource
from .enums import AddressFamily, IPVersionFilter, LogLevel, ResolverErrorCode, ResolverState
from .exceptions import (
    DomainNotFoundError,
    InvalidTargetError,
    NoAddressRecordError,
    QueryTimeoutError,
    ResolverError,
)
from .models import AddressRecord, Callback, ResolutionRequest, Timeouts
from .query_source import QuerySource
from .timers import TimerHandle, TimerScheduler, default_scheduler


WAIT_TIMER = "wait"
UPDATE_TIMER = "update"
CANCEL_TIMER = "cancel"

_TIMER_NAMES = (WAIT_TIMER, UPDATE_TIMER, CANCEL_TIMER)


def map_source_error(error: BaseException, target: str) -> ResolverError:
    """
    Map an error reported by a query source to a ResolverError.

    QueryTimeoutError, DomainNotFoundError and NoAddressRecordError get
    their own codes; everything else becomes SYSTEM wrapping the error.
    """
    if isinstance(error, ResolverError):
        return error

    if isinstance(error, QueryTimeoutError):
        code = ResolverErrorCode.SYSTEM_TIMEOUT
    elif isinstance(error, DomainNotFoundError):
        code = ResolverErrorCode.NO_SUCH_DOMAIN
    elif isinstance(error, NoAddressRecordError):
        code = ResolverErrorCode.NO_SUCH_ADDRESS
    else:
        code = ResolverErrorCode.SYSTEM

    message = ResolverError.MESSAGES[code]
    if code is ResolverErrorCode.SYSTEM:
        message = f"{message}: {error}"

    return ResolverError(
        code,
        message=message,
        details={"target": target, "source_error": str(error)},
        underlying=error,
    )


class _SourceListener:
    """Forwards query source events to the owning resolver."""

    def __init__(self, resolver: "Resolver") -> None:
        self._resolver = resolver

    def on_record(self, record: AddressRecord) -> None:
        self._resolver._handle_record(record)

    def on_error(self, error: BaseException) -> None:
        self._resolver._handle_error(error)

    def on_no_more_results(self) -> None:
        self._resolver._handle_no_more_results()


class Resolver:
    """
    Resolves one domain or IP literal into a live set of addresses.

    Create instances with Resolver.resolver_for(); the constructor is not
    part of the public interface.
    """

    component = "Resolver"

    _factory_token = object()

    # Pure address predicates, available without an instance.
    is_ip_address = staticmethod(is_ip_address)
    is_ipv4_address = staticmethod(is_ipv4_address)
    is_ipv6_address = staticmethod(is_ipv6_address)

    def __init__(
        self,
        request: ResolutionRequest,
        callback: Callback,
        source: QuerySource,
        scheduler: TimerScheduler,
        logger: Optional[AuditLogger],
        _token: object = None,
    ) -> None:
        if _token is not Resolver._factory_token:
            raise TypeError(
                "Resolver cannot be instantiated directly; use Resolver.resolver_for()"
            )
        self._request = request
        self._callback = callback
        self._source = source
        self._scheduler = scheduler
        self._logger = logger

        self._lock = threading.Lock()
        self._state = ResolverState.INERT
        self._cancel_reason: Optional[ResolverError] = None

        # Insertion-ordered set of current addresses.
        self._addresses: dict[str, AddressFamily] = {}
        self._families: frozenset = frozenset()
        self._has_delivered = False
        self._pending = False
        self._wait_elapsed = False
        self._subscribed = False

        self._timers: dict[str, Optional[TimerHandle]] = {name: None for name in _TIMER_NAMES}
        self._generations: dict[str, int] = {name: 0 for name in _TIMER_NAMES}

    @classmethod
    def resolver_for(
        cls,
        domain_or_ip_address: str,
        timeouts: Timeouts,
        version_filter: IPVersionFilter,
        queue: Optional[DeliveryQueue],
        callback: Callback,
        *,
        source: Optional[QuerySource] = None,
        scheduler: Optional[TimerScheduler] = None,
        logger: Optional[AuditLogger] = None,
    ) -> "Resolver":
        """
        Create an inactive resolver.

        Nothing is looked up until activate() is called.

        Args:
            domain_or_ip_address: Domain name or IP address literal
            timeouts: Wait, update and cancel timeouts (<= 0 disables)
            version_filter: Which IP versions to report
            queue: Queue the callback runs on; None uses main_queue()
            callback: Called as callback(resolver, error, addresses)
            source: Query source; defaults to a new SystemQuerySource
            scheduler: Timer scheduler; defaults to threading timers
            logger: Optional audit logger

        Returns:
            A new Resolver in the INERT state
        """
        if not isinstance(domain_or_ip_address, str):
            raise TypeError("domain_or_ip_address must be a string")
        if not isinstance(timeouts, Timeouts):
            raise TypeError("timeouts must be a Timeouts instance")
        if not isinstance(version_filter, IPVersionFilter):
            raise TypeError("version_filter must be an IPVersionFilter")
        if not callable(callback):
            raise TypeError("callback must be callable")

        if source is None:
            source = SystemQuerySource(logger=logger)

        request = ResolutionRequest(
            target=domain_or_ip_address,
            timeouts=timeouts,
            version_filter=version_filter,
            queue=queue if queue is not None else main_queue(),
        )
        return cls(
            request,
            callback,
            source,
            scheduler or default_scheduler(),
            logger,
            _token=cls._factory_token,
        )

    # ------------------------------------------------------------------
    # Read-only properties

    @property
    def domain_or_ip_address(self) -> str:
        return self._request.target

    target = domain_or_ip_address

    @property
    def timeouts(self) -> Timeouts:
        return self._request.timeouts

    @property
    def version_filter(self) -> IPVersionFilter:
        return self._request.version_filter

    @property
    def queue(self) -> DeliveryQueue:
        return self._request.queue

    @property
    def state(self) -> ResolverState:
        with self._lock:
            return self._state

    @property
    def is_active(self) -> bool:
        """True until the resolver is canceled by an error, a timeout or cancel()."""
        with self._lock:
            return self._state is ResolverState.ACTIVE

    @property
    def cancel_reason(self) -> Optional[ResolverError]:
        """The error the resolver was canceled by; None for cancel() or while active."""
        with self._lock:
            return self._cancel_reason

    @property
    def addresses(self) -> list[str]:
        """Snapshot of the current address set."""
        with self._lock:
            return list(self._addresses)

    def __repr__(self) -> str:
        return (
            f"Resolver(target={self._request.target!r}, "
            f"filter={self._request.version_filter.name}, state={self._state.value})"
        )

    # ------------------------------------------------------------------
    # Public operations

    def activate(self) -> None:
        """
        Start resolving.

        IP literals are answered immediately without a query. Domain names
        are handed to the query source and the enabled timers are armed.

        Raises:
            RuntimeError: If the resolver was activated before
        """
        with self._lock:
            if self._state is not ResolverState.INERT:
                raise RuntimeError(f"{self!r} can only be activated once")
            self._state = ResolverState.ACTIVE
            timeouts = self._request.timeouts
            self._log(LogLevel.INFO, "Resolver activated", {
                "version_filter": self._request.version_filter.name,
                "timeouts": timeouts.to_dict(),
            })

            target = self._request.target.strip()
            family = address_family(target)
            if family is not None:
                self._activate_literal(target, family)
                return

            try:
                canonical = normalize_target(target)
            except InvalidTargetError as e:
                self._cancel_locked(ResolverError(
                    ResolverErrorCode.NO_SUCH_DOMAIN,
                    message=f"Invalid domain name: {e.message}",
                    details={"target": self._request.target, **e.details},
                    underlying=e,
                ))
                return

            self._families = requested_families(self._request.version_filter)

            if timeouts.cancel_enabled:
                self._arm(CANCEL_TIMER, timeouts.cancel)
            if timeouts.wait_enabled:
                self._arm(WAIT_TIMER, timeouts.wait)
            else:
                self._wait_elapsed = True

            self._subscribed = True

        # Subscribe outside the lock: events may start arriving at once.
        try:
            self._source.subscribe(canonical, self._families, _SourceListener(self))
        except Exception as e:
            self._handle_error(e)
            return

        with self._lock:
            canceled_meanwhile = self._state is not ResolverState.ACTIVE
        if canceled_meanwhile:
            self._source.unsubscribe()

    def cancel(self) -> None:
        """
        Stop resolving. Safe to call any number of times, from any thread.

        Addresses accepted but not yet delivered are delivered first. A
        resolver that never delivered anything reports the cancellation
        with an empty address list. No callback follows after that.
        """
        self._finish(None)

    # ------------------------------------------------------------------
    # Source events

    def _handle_record(self, record: AddressRecord) -> None:
        with self._lock:
            if self._state is not ResolverState.ACTIVE:
                return

            if record.family not in self._families or address_family(record.address) is not record.family:
                self._log(LogLevel.DEBUG, "Record not accepted", {
                    "address": record.address,
                    "family": record.family.value,
                })
                return

            if record.added:
                changed = record.address not in self._addresses
                if changed:
                    self._addresses[record.address] = record.family
            else:
                changed = self._addresses.pop(record.address, None) is not None

            self._log(LogLevel.DEBUG, "Record accepted", {
                "address": record.address,
                "added": record.added,
                "changed": changed,
            })

            if changed:
                self._pending = True

            if self._has_delivered and self._request.timeouts.update_enabled:
                self._arm(UPDATE_TIMER, self._request.timeouts.update)

            if self._pending and self._addresses and self._wait_elapsed:
                self._deliver_update()

    def _handle_error(self, error: BaseException) -> None:
        self._finish(map_source_error(error, self._request.target))

    def _handle_no_more_results(self) -> None:
        with self._lock:
            if self._state is not ResolverState.ACTIVE:
                return
            if self._has_delivered or self._addresses:
                self._log(LogLevel.DEBUG, "Source finished", {
                    "addresses": list(self._addresses),
                })
                return
            unsubscribe = self._cancel_locked(ResolverError(
                ResolverErrorCode.NO_MORE_RESULTS,
                details={"target": self._request.target},
            ))
        if unsubscribe:
            self._source.unsubscribe()

    # ------------------------------------------------------------------
    # Timers

    def _arm(self, name: str, delay: float) -> None:
        """Arm (or re-arm) a timer. Caller holds the lock."""
        handle = self._timers[name]
        if handle is not None:
            handle.cancel()
        self._generations[name] += 1
        generation = self._generations[name]
        self._timers[name] = self._scheduler.call_later(
            delay,
            lambda: self._timer_fired(name, generation),
        )

    def _disarm_all(self) -> None:
        for name in _TIMER_NAMES:
            handle = self._timers[name]
            if handle is not None:
                handle.cancel()
            self._timers[name] = None
            # A callback already in flight sees a stale generation.
            self._generations[name] += 1

    def _timer_fired(self, name: str, generation: int) -> None:
        with self._lock:
            if self._state is not ResolverState.ACTIVE or self._generations[name] != generation:
                return
            self._timers[name] = None
            self._log(LogLevel.DEBUG, f"{name.capitalize()} timer fired")

            if name == WAIT_TIMER:
                self._wait_elapsed = True
                if self._pending and self._addresses:
                    self._deliver_update()
                return

            if name == UPDATE_TIMER:
                reason = ResolverError(
                    ResolverErrorCode.UPDATE_TIMEOUT_HIT,
                    details={"update_timeout": self._request.timeouts.update},
                )
            else:
                reason = ResolverError(
                    ResolverErrorCode.CANCEL_TIMEOUT_HIT,
                    details={"cancel_timeout": self._request.timeouts.cancel},
                )
            unsubscribe = self._cancel_locked(reason)
        if unsubscribe:
            self._source.unsubscribe()

    # ------------------------------------------------------------------
    # Delivery and cancellation; callers hold the lock

    def _activate_literal(self, literal: str, family: AddressFamily) -> None:
        version_filter = self._request.version_filter
        # For literals SUPPORTED behaves like ANY.
        if version_filter in (IPVersionFilter.SUPPORTED, IPVersionFilter.ANY) or (
            family in requested_families(version_filter)
        ):
            self._addresses[literal] = family
            self._wait_elapsed = True
            self._has_delivered = True
            self._submit(None, [literal])
            return

        self._cancel_locked(ResolverError(
            ResolverErrorCode.NO_SUCH_ADDRESS,
            message=f"{family.value} literal does not match filter {version_filter.name}",
            details={"target": literal, "family": family.value},
        ))

    def _deliver_update(self) -> None:
        addresses = list(self._addresses)
        self._pending = False
        self._has_delivered = True
        self._submit(None, addresses)
        if self._request.timeouts.update_enabled:
            self._arm(UPDATE_TIMER, self._request.timeouts.update)

    def _submit(self, error: Optional[ResolverError], addresses: list[str]) -> None:
        callback: Callable = self._callback

        def deliver() -> None:
            callback(self, error, addresses)

        self._log(LogLevel.INFO, "Delivering", {
            "addresses": addresses,
            "error": error.code if error is not None else None,
        })
        try:
            self._request.queue.submit(deliver)
        except Exception as e:
            self._log_error("Could not submit callback to delivery queue", e)

    def _cancel_locked(self, reason: Optional[ResolverError]) -> bool:
        """
        Move to CANCELED, delivering what is pending.

        Returns:
            True if the caller must unsubscribe from the source after
            releasing the lock
        """
        if self._state is not ResolverState.ACTIVE:
            return False

        self._disarm_all()

        flushed = False
        if self._pending and self._addresses:
            self._submit(None, list(self._addresses))
            self._has_delivered = True
            flushed = True
        self._pending = False

        self._state = ResolverState.CANCELED
        self._cancel_reason = reason

        if reason is not None:
            self._submit(reason, [])
        elif not flushed and not self._has_delivered:
            self._submit(None, [])

        if reason is None:
            self._log(LogLevel.INFO, "Resolver canceled")
        else:
            self._log(LogLevel.WARN, "Resolver canceled by error", reason.to_dict())

        return self._subscribed

    def _finish(self, reason: Optional[ResolverError]) -> None:
        with self._lock:
            unsubscribe = self._cancel_locked(reason)
        if unsubscribe:
            self._source.unsubscribe()

    # ------------------------------------------------------------------
    # Logging

    def _log(self, level: LogLevel, message: str, data: Optional[dict] = None) -> None:
        if self._logger:
            payload = {"target": self._request.target}
            payload.update(data or {})
            self._logger.log(level, self.component, message, payload)

    def _log_error(self, message: str, error: BaseException) -> None:
        if self._logger:
            self._logger.log_error(
                self.component,
                message,
                error=error,
                additional_data={"target": self._request.target},
            )


def resolve_once(
    domain_or_ip_address: str,
    timeouts: Optional[Timeouts] = None,
    version_filter: IPVersionFilter = IPVersionFilter.SUPPORTED,
    *,
    source: Optional[QuerySource] = None,
    scheduler: Optional[TimerScheduler] = None,
    logger: Optional[AuditLogger] = None,
) -> list[str]:
    """
    Resolve a target and return the first delivered address list.

    Blocks the calling thread. Unlike the callback interface, failures are
    raised here.

    Args:
        domain_or_ip_address: Domain name or IP address literal
        timeouts: Defaults to no wait, no update timeout, 10s cancel timeout
        version_filter: Which IP versions to report
        source: Query source; defaults to a new SystemQuerySource
        scheduler: Timer scheduler; defaults to threading timers
        logger: Optional audit logger

    Returns:
        List of address strings

    Raises:
        ResolverError: If the resolver was canceled by an error
    """
    timeouts = timeouts or Timeouts(0.0, 0.0, 10.0)
    done = threading.Event()
    outcome: dict = {}

    def callback(resolver: Resolver, error: Optional[ResolverError], addresses: Optional[list[str]]) -> None:
        if done.is_set():
            return
        outcome["addresses"] = list(addresses or [])
        outcome["error"] = error
        done.set()
        resolver.cancel()

    queue = SerialDispatchQueue(name="resolve-once", logger=logger)
    resolver = Resolver.resolver_for(
        domain_or_ip_address,
        timeouts,
        version_filter,
        queue,
        callback,
        source=source,
        scheduler=scheduler,
        logger=logger,
    )
    try:
        resolver.activate()
        done.wait()
    finally:
        resolver.cancel()
        queue.close()

    if outcome.get("error") is not None:
        raise outcome["error"]
    return outcome.get("addresses", [])
