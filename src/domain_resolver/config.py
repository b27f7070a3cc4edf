"""
Configuration dataclasses for the domain resolver.

This module defines the configuration structures used by the CLI and by
callers that build resolvers from files: timeouts, version filter, query
source settings and logging. Configuration is read from JSON files and
from DOMAIN_RESOLVER_* environment variables.
"""

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

from .enums import IPVersionFilter, LogLevel, QuerySourceKind
from .exceptions import ConfigurationError
from .models import Timeouts


DEFAULT_CONFIG_PATH = Path.home() / ".domain_resolver" / "config.json"

DEFAULT_DOH_ENDPOINT = "https://cloudflare-dns.com/dns-query"


@dataclass
class SystemSourceConfig:
    """Settings for the getaddrinfo-backed query source."""

    refresh_interval: Optional[float] = 30.0  # no TTL from getaddrinfo
    min_refresh: float = 1.0
    max_refresh: float = 300.0
    one_shot: bool = False


@dataclass
class DNSSourceConfig:
    """Settings for the dnspython-backed query source."""

    nameservers: list[str] = field(default_factory=list)  # empty: system config
    lifetime: float = 5.0
    refresh_interval: Optional[float] = None  # None: follow record TTL
    min_refresh: float = 1.0
    max_refresh: float = 300.0
    one_shot: bool = False


@dataclass
class DoHSourceConfig:
    """Settings for the DNS-over-HTTPS query source."""

    endpoint: str = DEFAULT_DOH_ENDPOINT
    timeout: float = 5.0
    headers: dict[str, str] = field(default_factory=dict)
    refresh_interval: Optional[float] = None
    min_refresh: float = 1.0
    max_refresh: float = 300.0
    one_shot: bool = False


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"
    output_format: str = "text"  # 'json', 'text', 'both'


@dataclass
class ResolverConfig:
    """Main configuration combining all sub-configurations."""

    timeouts: Timeouts = field(default_factory=lambda: Timeouts(0.5, 2.0, 10.0))
    version_filter: IPVersionFilter = IPVersionFilter.SUPPORTED
    source: QuerySourceKind = QuerySourceKind.SYSTEM
    system: SystemSourceConfig = field(default_factory=SystemSourceConfig)
    dns: DNSSourceConfig = field(default_factory=DNSSourceConfig)
    doh: DoHSourceConfig = field(default_factory=DoHSourceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    simulation_mode: bool = False
    static_records: dict[str, list[str]] = field(default_factory=dict)


def create_default_config(simulation_mode: bool = False) -> ResolverConfig:
    """
    Create a default configuration.

    Args:
        simulation_mode: If True, resolve from static_records only

    Returns:
        ResolverConfig with default values
    """
    config = ResolverConfig(simulation_mode=simulation_mode)
    if simulation_mode:
        config.source = QuerySourceKind.STATIC
    return config


def validate_config(config: ResolverConfig) -> None:
    """
    Check values that the dataclasses cannot enforce.

    Raises:
        ConfigurationError: If a value is out of range
    """
    if config.logging.output_format not in ("json", "text", "both"):
        raise ConfigurationError(
            code="invalid_logging",
            message=f"Invalid logging output_format: {config.logging.output_format}",
            details={"output_format": config.logging.output_format},
        )
    try:
        LogLevel(config.logging.level)
    except ValueError as e:
        raise ConfigurationError(
            code="invalid_logging",
            message=f"Invalid logging level: {config.logging.level}",
            details={"level": config.logging.level},
        ) from e

    for name, source in (("system", config.system), ("dns", config.dns), ("doh", config.doh)):
        if source.min_refresh <= 0 or source.max_refresh < source.min_refresh:
            raise ConfigurationError(
                code="invalid_refresh",
                message=f"Invalid refresh bounds for {name} source",
                details={
                    "min_refresh": source.min_refresh,
                    "max_refresh": source.max_refresh,
                },
            )

    if config.dns.lifetime <= 0 or config.doh.timeout <= 0:
        raise ConfigurationError(
            code="invalid_timeout",
            message="Query timeouts must be positive",
            details={"dns_lifetime": config.dns.lifetime, "doh_timeout": config.doh.timeout},
        )


def config_from_dict(data: dict) -> ResolverConfig:
    """
    Build a ResolverConfig from parsed JSON.

    Raises:
        ConfigurationError: If a value has the wrong type or is unknown
    """
    try:
        timeouts_data = data.get("timeouts", {})
        timeouts = Timeouts.make(
            timeouts_data.get("wait", 0.5),
            timeouts_data.get("update", 2.0),
            timeouts_data.get("cancel", 10.0),
        )

        system_data = data.get("system", {})
        system = SystemSourceConfig(
            refresh_interval=system_data.get("refresh_interval", 30.0),
            min_refresh=float(system_data.get("min_refresh", 1.0)),
            max_refresh=float(system_data.get("max_refresh", 300.0)),
            one_shot=bool(system_data.get("one_shot", False)),
        )

        dns_data = data.get("dns", {})
        dns = DNSSourceConfig(
            nameservers=list(dns_data.get("nameservers", [])),
            lifetime=float(dns_data.get("lifetime", 5.0)),
            refresh_interval=dns_data.get("refresh_interval"),
            min_refresh=float(dns_data.get("min_refresh", 1.0)),
            max_refresh=float(dns_data.get("max_refresh", 300.0)),
            one_shot=bool(dns_data.get("one_shot", False)),
        )

        doh_data = data.get("doh", {})
        doh = DoHSourceConfig(
            endpoint=doh_data.get("endpoint", DEFAULT_DOH_ENDPOINT),
            timeout=float(doh_data.get("timeout", 5.0)),
            headers=dict(doh_data.get("headers", {})),
            refresh_interval=doh_data.get("refresh_interval"),
            min_refresh=float(doh_data.get("min_refresh", 1.0)),
            max_refresh=float(doh_data.get("max_refresh", 300.0)),
            one_shot=bool(doh_data.get("one_shot", False)),
        )

        logging_data = data.get("logging", {})
        logging_config = LoggingConfig(
            level=logging_data.get("level", "info"),
            output_format=logging_data.get("output_format", "text"),
        )

        config = ResolverConfig(
            timeouts=timeouts,
            version_filter=IPVersionFilter.from_name(
                data.get("version_filter", "supported")
            ),
            source=QuerySourceKind(data.get("source", "system")),
            system=system,
            dns=dns,
            doh=doh,
            logging=logging_config,
            simulation_mode=bool(data.get("simulation_mode", False)),
            static_records={
                str(k): list(v) for k, v in data.get("static_records", {}).items()
            },
        )
    except (AttributeError, TypeError, ValueError) as e:
        raise ConfigurationError(
            code="invalid_config",
            message=f"Invalid configuration: {e}",
            details={"error": str(e)},
        ) from e

    validate_config(config)
    return config


def config_to_dict(config: ResolverConfig) -> dict:
    """Serialize a ResolverConfig to JSON-compatible data."""
    return {
        "timeouts": config.timeouts.to_dict(),
        "version_filter": config.version_filter.name.lower(),
        "source": config.source.value,
        "system": {
            "refresh_interval": config.system.refresh_interval,
            "min_refresh": config.system.min_refresh,
            "max_refresh": config.system.max_refresh,
            "one_shot": config.system.one_shot,
        },
        "dns": {
            "nameservers": config.dns.nameservers,
            "lifetime": config.dns.lifetime,
            "refresh_interval": config.dns.refresh_interval,
            "min_refresh": config.dns.min_refresh,
            "max_refresh": config.dns.max_refresh,
            "one_shot": config.dns.one_shot,
        },
        "doh": {
            "endpoint": config.doh.endpoint,
            "timeout": config.doh.timeout,
            "headers": config.doh.headers,
            "refresh_interval": config.doh.refresh_interval,
            "min_refresh": config.doh.min_refresh,
            "max_refresh": config.doh.max_refresh,
            "one_shot": config.doh.one_shot,
        },
        "logging": {
            "level": config.logging.level,
            "output_format": config.logging.output_format,
        },
        "simulation_mode": config.simulation_mode,
        "static_records": config.static_records,
    }


def load_config_from_file(config_path: Path) -> Optional[ResolverConfig]:
    """
    Load configuration from a JSON file.

    Args:
        config_path: Path to the configuration file

    Returns:
        ResolverConfig, or None if the file does not exist

    Raises:
        ConfigurationError: If the file is not valid JSON or has invalid values
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return None
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            code="invalid_json",
            message=f"Config file is not valid JSON: {e}",
            details={"path": str(config_path)},
        ) from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            code="invalid_config",
            message="Config file must contain a JSON object",
            details={"path": str(config_path)},
        )
    return config_from_dict(data)


def save_config_to_file(config: ResolverConfig, config_path: Path) -> None:
    """
    Save configuration to a JSON file, creating parent directories.

    Raises:
        OSError: If the file cannot be written
    """
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w", encoding="utf-8") as f:
        json.dump(config_to_dict(config), f, indent=2, ensure_ascii=False)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(
            code="invalid_env",
            message=f"{name} must be a number, got {raw!r}",
            details={"variable": name},
        ) from e


def load_config_from_env(base: Optional[ResolverConfig] = None) -> ResolverConfig:
    """
    Apply DOMAIN_RESOLVER_* environment variables on top of a config.

    Recognized variables: WAIT_TIMEOUT, UPDATE_TIMEOUT, CANCEL_TIMEOUT,
    VERSION_FILTER, SOURCE, NAMESERVERS (comma separated), DOH_ENDPOINT,
    LOG_LEVEL, LOG_FORMAT.

    Args:
        base: Config to start from; defaults to create_default_config()

    Returns:
        New ResolverConfig with overrides applied
    """
    config = base or create_default_config()
    prefix = "DOMAIN_RESOLVER_"

    timeouts = Timeouts.make(
        _env_float(prefix + "WAIT_TIMEOUT", config.timeouts.wait),
        _env_float(prefix + "UPDATE_TIMEOUT", config.timeouts.update),
        _env_float(prefix + "CANCEL_TIMEOUT", config.timeouts.cancel),
    )

    try:
        version_filter = config.version_filter
        if os.getenv(prefix + "VERSION_FILTER"):
            version_filter = IPVersionFilter.from_name(os.environ[prefix + "VERSION_FILTER"])
        source = config.source
        if os.getenv(prefix + "SOURCE"):
            source = QuerySourceKind(os.environ[prefix + "SOURCE"].strip().lower())
    except ValueError as e:
        raise ConfigurationError(
            code="invalid_env",
            message=str(e),
            details={"error": str(e)},
        ) from e

    dns = config.dns
    nameservers = os.getenv(prefix + "NAMESERVERS", "")
    if nameservers.strip():
        dns = replace(
            dns,
            nameservers=[ns.strip() for ns in nameservers.replace(";", ",").split(",") if ns.strip()],
        )

    doh = config.doh
    if os.getenv(prefix + "DOH_ENDPOINT"):
        doh = replace(doh, endpoint=os.environ[prefix + "DOH_ENDPOINT"].strip())

    logging_config = LoggingConfig(
        level=(os.getenv(prefix + "LOG_LEVEL") or config.logging.level).lower(),
        output_format=(os.getenv(prefix + "LOG_FORMAT") or config.logging.output_format).lower(),
    )

    result = replace(
        config,
        timeouts=timeouts,
        version_filter=version_filter,
        source=source,
        dns=dns,
        doh=doh,
        logging=logging_config,
    )
    validate_config(result)
    return result
