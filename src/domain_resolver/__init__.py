"""
Domain Resolver - live, continuously updated domain name resolution.

This package resolves a domain name (or IP address literal) into a set of
addresses and keeps that set current, delivering it to a callback on a
caller-chosen queue under wait, update and cancel timeouts.
"""

__version__ = "0.1.0"
__author__ = "Domain Resolver Team"

from domain_resolver.exceptions import (
    DomainResolverError,
    ResolverError,
    QueryError,
    QueryTimeoutError,
    DomainNotFoundError,
    NoAddressRecordError,
    InvalidTargetError,
    ConfigurationError,
)
from domain_resolver.enums import (
    IPVersionFilter,
    AddressFamily,
    ResolverErrorCode,
    ResolverState,
    LogLevel,
    QuerySourceKind,
)
from domain_resolver.address_classifier import (
    is_ip_address,
    is_ipv4_address,
    is_ipv6_address,
    address_family,
    requested_families,
    host_supported_families,
    normalize_target,
)
from domain_resolver.models import (
    Timeouts,
    AddressRecord,
    ResolutionRequest,
    CallbackEvent,
)
from domain_resolver.config import (
    SystemSourceConfig,
    DNSSourceConfig,
    DoHSourceConfig,
    LoggingConfig,
    ResolverConfig,
    create_default_config,
    load_config_from_file,
    load_config_from_env,
    save_config_to_file,
)
from domain_resolver.audit_logger import (
    AuditLogger,
    LogEntry,
)
from domain_resolver.dispatch import (
    DeliveryQueue,
    SerialDispatchQueue,
    LoopDispatchQueue,
    main_queue,
)
from domain_resolver.timers import (
    TimerScheduler,
    ThreadingTimerScheduler,
    default_scheduler,
)
from domain_resolver.query_source import (
    QueryListener,
    QuerySource,
    PollingQuerySource,
    StaticQuerySource,
)
from domain_resolver.system_source import SystemQuerySource
from domain_resolver.dns_source import DNSQuerySource
from domain_resolver.doh_source import DoHQuerySource
from domain_resolver.resolver import (
    Resolver,
    map_source_error,
    resolve_once,
)
from domain_resolver.cli import (
    main as cli_main,
    create_parser,
)

__all__ = [
    # Exceptions
    "DomainResolverError",
    "ResolverError",
    "QueryError",
    "QueryTimeoutError",
    "DomainNotFoundError",
    "NoAddressRecordError",
    "InvalidTargetError",
    "ConfigurationError",
    # Enums
    "IPVersionFilter",
    "AddressFamily",
    "ResolverErrorCode",
    "ResolverState",
    "LogLevel",
    "QuerySourceKind",
    # Address Classifier
    "is_ip_address",
    "is_ipv4_address",
    "is_ipv6_address",
    "address_family",
    "requested_families",
    "host_supported_families",
    "normalize_target",
    # Models
    "Timeouts",
    "AddressRecord",
    "ResolutionRequest",
    "CallbackEvent",
    # Configuration
    "SystemSourceConfig",
    "DNSSourceConfig",
    "DoHSourceConfig",
    "LoggingConfig",
    "ResolverConfig",
    "create_default_config",
    "load_config_from_file",
    "load_config_from_env",
    "save_config_to_file",
    # Audit Logger
    "AuditLogger",
    "LogEntry",
    # Dispatch
    "DeliveryQueue",
    "SerialDispatchQueue",
    "LoopDispatchQueue",
    "main_queue",
    # Timers
    "TimerScheduler",
    "ThreadingTimerScheduler",
    "default_scheduler",
    # Query Sources
    "QueryListener",
    "QuerySource",
    "PollingQuerySource",
    "StaticQuerySource",
    "SystemQuerySource",
    "DNSQuerySource",
    "DoHQuerySource",
    # Resolver
    "Resolver",
    "map_source_error",
    "resolve_once",
    # CLI
    "cli_main",
    "create_parser",
]
