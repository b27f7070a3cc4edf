"""
Data models for the domain resolver.

This module defines the timeout triple, the address records a query source
emits, the immutable resolution request and the event a callback receives.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Optional

from .enums import AddressFamily, IPVersionFilter

if TYPE_CHECKING:
    from .dispatch import DeliveryQueue
    from .exceptions import ResolverError


@dataclass(frozen=True)
class Timeouts:
    """
    Wait, update and cancel timeouts in seconds.

    A value of 0 or less disables that timer for the lifetime of a resolver.
    """

    # Minimum time to collect results before the first delivery.
    wait: float = 0.0
    # Cancel if no update arrived for this long after the first delivery.
    update: float = 0.0
    # Cancel this long after activation, no matter what.
    cancel: float = 0.0

    @classmethod
    def make(cls, wait: float, update: float, cancel: float) -> "Timeouts":
        return cls(float(wait), float(update), float(cancel))

    @classmethod
    def disabled(cls) -> "Timeouts":
        return cls(0.0, 0.0, 0.0)

    @property
    def wait_enabled(self) -> bool:
        return self.wait > 0

    @property
    def update_enabled(self) -> bool:
        return self.update > 0

    @property
    def cancel_enabled(self) -> bool:
        return self.cancel > 0

    def to_dict(self) -> dict:
        return {"wait": self.wait, "update": self.update, "cancel": self.cancel}


@dataclass(frozen=True)
class AddressRecord:
    """A single address event from a query source."""

    address: str
    family: AddressFamily
    added: bool = True  # False when the address went away
    ttl: Optional[int] = None


@dataclass(frozen=True)
class ResolutionRequest:
    """Everything a resolver is configured with; never mutated."""

    target: str
    timeouts: Timeouts
    version_filter: IPVersionFilter
    queue: "DeliveryQueue"


@dataclass
class CallbackEvent:
    """
    One callback invocation, as recorded by collectors and the CLI.

    An event with addresses never carries an error. An event without
    addresses is the terminal one: error is None for a caller cancel.
    """

    resolver: Any
    error: Optional["ResolverError"]
    addresses: list[str] = field(default_factory=list)
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    @property
    def is_terminal(self) -> bool:
        return not self.addresses


Callback = Callable[[Any, Optional["ResolverError"], Optional[list[str]]], None]
