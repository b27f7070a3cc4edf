"""
Enumeration types for the domain resolver.

These enums provide type-safe constants for version filters, error codes,
address families and configuration options throughout the package.
"""

from enum import Enum


class IPVersionFilter(Enum):
    """Which IP versions a resolver reports."""

    # Only IP versions the host currently supports.
    # For IP address literals this behaves like ANY.
    SUPPORTED = -1
    ANY = 0
    IPV4_ONLY = 4
    IPV6_ONLY = 6

    @classmethod
    def from_name(cls, name: str) -> "IPVersionFilter":
        """Parse a CLI/config spelling such as 'any', 'ipv4' or 'ipv6_only'."""
        key = name.strip().lower().replace("-", "_")
        aliases = {
            "supported": cls.SUPPORTED,
            "any": cls.ANY,
            "ipv4": cls.IPV4_ONLY,
            "ipv4_only": cls.IPV4_ONLY,
            "ipv6": cls.IPV6_ONLY,
            "ipv6_only": cls.IPV6_ONLY,
        }
        if key not in aliases:
            raise ValueError(f"Unknown IP version filter: {name!r}")
        return aliases[key]


class AddressFamily(Enum):
    """IP address family of a single address."""

    IPV4 = "ipv4"
    IPV6 = "ipv6"


class ResolverErrorCode(Enum):
    """Error kinds a resolver can be canceled with."""

    SYSTEM = "system"
    UPDATE_TIMEOUT_HIT = "update_timeout_hit"
    CANCEL_TIMEOUT_HIT = "cancel_timeout_hit"
    NO_MORE_RESULTS = "no_more_results"
    SYSTEM_TIMEOUT = "system_timeout"
    NO_SUCH_DOMAIN = "no_such_domain"
    NO_SUCH_ADDRESS = "no_such_address"


class ResolverState(Enum):
    """Lifecycle state of a resolver."""

    INERT = "inert"
    ACTIVE = "active"
    CANCELED = "canceled"


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    @property
    def severity(self) -> int:
        return _LOG_SEVERITY[self]


_LOG_SEVERITY = {
    LogLevel.DEBUG: 10,
    LogLevel.INFO: 20,
    LogLevel.WARN: 30,
    LogLevel.ERROR: 40,
}


class QuerySourceKind(Enum):
    """Query subsystem implementation selectable from config or CLI."""

    SYSTEM = "system"
    DNS = "dns"
    DOH = "doh"
    STATIC = "static"
