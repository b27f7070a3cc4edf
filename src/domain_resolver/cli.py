"""
Command-line interface for the domain resolver.

This module provides the main CLI entry point with commands for:
- resolve: Resolve a domain or IP literal and print every delivery
- classify: Tell IPv4, IPv6 literals and domain names apart
- config: Configuration management
"""

import argparse
import json
import sys
import threading
from dataclasses import replace
from pathlib import Path
from typing import Optional, TextIO

from dotenv import load_dotenv

from . import __version__
from .address_classifier import address_family, normalize_target
from .audit_logger import AuditLogger
from .config import (
    DEFAULT_CONFIG_PATH,
    ResolverConfig,
    create_default_config,
    load_config_from_env,
    load_config_from_file,
    save_config_to_file,
)
from .dispatch import SerialDispatchQueue
from .dns_source import DNSQuerySource
from .system_source import SystemQuerySource
from .doh_source import DoHQuerySource
from .enums import IPVersionFilter, LogLevel, QuerySourceKind, ResolverErrorCode
from .exceptions import ConfigurationError, InvalidTargetError
from .models import CallbackEvent, Timeouts
from .query_source import PollingQuerySource, QuerySource, StaticQuerySource
from .resolver import Resolver
from .timers import TimerScheduler


# Codes that end a resolution normally once something was delivered
COMPLETION_CODES = frozenset({
    ResolverErrorCode.UPDATE_TIMEOUT_HIT,
    ResolverErrorCode.CANCEL_TIMEOUT_HIT,
})

EXIT_INTERRUPTED = 130


def create_source(config: ResolverConfig, logger: Optional[AuditLogger] = None) -> QuerySource:
    """
    Create the query source selected by the configuration.

    Simulation mode always uses the static source, so no network
    requests are made.
    """
    if config.simulation_mode or config.source is QuerySourceKind.STATIC:
        return StaticQuerySource(config.static_records, logger=logger)
    if config.source is QuerySourceKind.DOH:
        return DoHQuerySource(config.doh, logger=logger)
    if config.source is QuerySourceKind.DNS:
        return DNSQuerySource(config.dns, logger=logger)
    return SystemQuerySource(config.system, logger=logger)


def format_event(event: CallbackEvent, as_json: bool = False) -> str:
    """Render a callback event as one output line."""
    resolver = event.resolver
    if as_json:
        return json.dumps({
            "timestamp": event.timestamp,
            "target": resolver.target,
            "addresses": event.addresses,
            "error": event.error.to_dict() if event.error is not None else None,
            "terminal": event.is_terminal,
        }, ensure_ascii=False)

    if event.addresses:
        return f"{resolver.target}: {', '.join(event.addresses)}"
    if event.error is not None:
        return f"{resolver.target}: {event.error.message} ({event.error.code})"
    return f"{resolver.target}: canceled"


def run_resolution(
    target: str,
    config: ResolverConfig,
    as_json: bool = False,
    once: bool = False,
    logger: Optional[AuditLogger] = None,
    output: Optional[TextIO] = None,
    source: Optional[QuerySource] = None,
    scheduler: Optional[TimerScheduler] = None,
) -> int:
    """
    Run one resolver until it ends and print its deliveries.

    Args:
        target: Domain name or IP literal
        config: Resolver configuration
        as_json: Print JSON lines instead of text
        once: Cancel after the first delivery
        logger: Optional audit logger
        output: Output stream (defaults to sys.stdout)
        source: Query source override (defaults to create_source(config))
        scheduler: Timer scheduler override

    Returns:
        Exit code: 0 when addresses were delivered or the caller canceled,
        1 when the resolver failed
    """
    output = output or sys.stdout
    finished = threading.Event()
    events: list[CallbackEvent] = []

    def callback(resolver: Resolver, error, addresses) -> None:
        event = CallbackEvent(resolver, error, list(addresses or []))
        events.append(event)
        print(format_event(event, as_json), file=output, flush=True)
        if event.is_terminal:
            finished.set()
        elif once:
            resolver.cancel()
            finished.set()

    source = source or create_source(config, logger)
    queue = SerialDispatchQueue(name="cli", logger=logger)
    resolver = Resolver.resolver_for(
        target,
        config.timeouts,
        config.version_filter,
        queue,
        callback,
        source=source,
        scheduler=scheduler,
        logger=logger,
    )

    # A literal is delivered once and then stays quiet.
    once = once or Resolver.is_ip_address(target.strip())

    try:
        resolver.activate()
        while not finished.wait(0.2):
            pass
    except KeyboardInterrupt:
        resolver.cancel()
        queue.drain(1.0)
        queue.close()
        _wait_for_source(source)
        return EXIT_INTERRUPTED

    queue.drain(5.0)
    queue.close()
    _wait_for_source(source)

    delivered = any(event.addresses for event in events)
    reason = resolver.cancel_reason
    if reason is None:
        return 0
    if delivered and reason.kind in COMPLETION_CODES:
        return 0
    return 1


def _wait_for_source(source: QuerySource, timeout: float = 2.0) -> None:
    # Lets polling sources release their clients before the process exits.
    if isinstance(source, PollingQuerySource):
        source.join(timeout)


def _load_config(args: argparse.Namespace) -> ResolverConfig:
    config = None
    if getattr(args, "config", None):
        config = load_config_from_file(Path(args.config))
        if config is None:
            raise ConfigurationError(
                code="missing_config",
                message=f"Config file not found: {args.config}",
                details={"path": args.config},
            )

    load_dotenv()
    return load_config_from_env(config)


def cmd_resolve(args: argparse.Namespace) -> int:
    """Handle the 'resolve' command."""
    try:
        config = _load_config(args)
    except ConfigurationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    timeouts = Timeouts.make(
        args.wait if args.wait is not None else config.timeouts.wait,
        args.update if args.update is not None else config.timeouts.update,
        args.cancel if args.cancel is not None else config.timeouts.cancel,
    )
    config = replace(config, timeouts=timeouts)

    if args.filter:
        config = replace(config, version_filter=IPVersionFilter.from_name(args.filter))
    if args.source:
        config = replace(config, source=QuerySourceKind(args.source))
    if args.nameserver:
        config = replace(config, dns=replace(config.dns, nameservers=list(args.nameserver)))
    if args.dry_run:
        config = replace(config, simulation_mode=True)

    logging_config = config.logging
    if args.verbose:
        logging_config = replace(logging_config, level=LogLevel.DEBUG.value)
    logger = AuditLogger.from_config(logging_config)

    return run_resolution(
        args.target,
        config,
        as_json=args.json,
        once=args.once,
        logger=logger,
    )


def cmd_classify(args: argparse.Namespace) -> int:
    """Handle the 'classify' command."""
    exit_code = 0
    for value in args.values:
        family = address_family(value)
        if family is not None:
            kind = family.value
        else:
            try:
                normalize_target(value)
                kind = "domain"
            except InvalidTargetError:
                kind = "invalid"
                exit_code = 1
        print(f"{value}\t{kind}")
    return exit_code


def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    config_path = Path(args.path) if args.path else DEFAULT_CONFIG_PATH

    if args.action == "init":
        if config_path.exists() and not args.force:
            print(f"Configuration already exists at: {config_path}")
            print("Use --force to overwrite.")
            return 1

        try:
            save_config_to_file(create_default_config(), config_path)
        except OSError as e:
            print(f"Error writing config: {e}", file=sys.stderr)
            return 1
        print(f"Configuration created at: {config_path}")
        return 0

    try:
        config = load_config_from_file(config_path)
    except ConfigurationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    if config is None:
        print(f"No configuration found at: {config_path}")
        print("Use 'config init' to create a default configuration.")
        return 1

    if args.action == "show":
        print(f"Configuration from: {config_path}")
        print(f"  Timeouts: wait={config.timeouts.wait}s "
              f"update={config.timeouts.update}s cancel={config.timeouts.cancel}s")
        print(f"  Version filter: {config.version_filter.name.lower()}")
        print(f"  Source: {config.source.value}")
        print(f"  Nameservers: {', '.join(config.dns.nameservers) or '(system)'}")
        print(f"  DoH endpoint: {config.doh.endpoint}")
        print(f"  Simulation mode: {config.simulation_mode}")
        print(f"  Log level: {config.logging.level}")
        return 0

    print(f"Configuration at {config_path} is valid.")
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="domain-resolver",
        description="Resolve domains into live, continuously updated address sets",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # 'resolve' command
    resolve_parser = subparsers.add_parser(
        "resolve",
        help="Resolve a domain name or IP address literal",
    )
    resolve_parser.add_argument(
        "target",
        help="Domain name or IP address (e.g., example.com)",
    )
    resolve_parser.add_argument(
        "--wait", "-w",
        type=float,
        help="Seconds to collect results before the first delivery (<= 0 disables)",
    )
    resolve_parser.add_argument(
        "--update", "-u",
        type=float,
        help="Cancel when no update arrives for this many seconds (<= 0 disables)",
    )
    resolve_parser.add_argument(
        "--cancel", "-t",
        type=float,
        help="Cancel after this many seconds in total (<= 0 disables)",
    )
    resolve_parser.add_argument(
        "--filter", "-f",
        choices=["supported", "any", "ipv4", "ipv6"],
        help="IP versions to report (default: supported)",
    )
    resolve_parser.add_argument(
        "--source", "-s",
        choices=[kind.value for kind in QuerySourceKind],
        help="Query source (default: system)",
    )
    resolve_parser.add_argument(
        "--nameserver", "-n",
        action="append",
        help="Nameserver to query instead of the system ones (repeatable)",
    )
    resolve_parser.add_argument(
        "--once",
        action="store_true",
        help="Stop after the first delivery",
    )
    resolve_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Simulation mode - answer from static_records, no network requests",
    )
    resolve_parser.add_argument(
        "--config", "-c",
        help="Path to configuration file",
    )
    resolve_parser.add_argument(
        "--json",
        action="store_true",
        help="Print deliveries as JSON lines",
    )
    resolve_parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    resolve_parser.set_defaults(func=cmd_resolve)

    # 'classify' command
    classify_parser = subparsers.add_parser(
        "classify",
        help="Classify values as ipv4, ipv6, domain or invalid",
    )
    classify_parser.add_argument(
        "values",
        nargs="+",
        help="Values to classify",
    )
    classify_parser.set_defaults(func=cmd_classify)

    # 'config' command
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
    )
    config_parser.add_argument(
        "action",
        choices=["show", "init", "validate"],
        help="Configuration action",
    )
    config_parser.add_argument(
        "--path", "-p",
        help="Path to configuration file",
    )
    config_parser.add_argument(
        "--force",
        action="store_true",
        help="Force overwrite existing configuration",
    )
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
