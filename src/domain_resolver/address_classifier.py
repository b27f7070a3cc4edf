"""
Address classification and target normalization.

Pure predicates telling whether a string is an IPv4 or IPv6 address literal,
plus the helpers a resolver needs to decide which address families to ask
for. Nothing here touches the network or the system resolver, except
host_supported_families(), which only inspects the local routing table.
"""

import ipaddress
import re
import socket
from typing import Optional

import idna

from .enums import AddressFamily, IPVersionFilter
from .exceptions import InvalidTargetError


# Forbidden characters in domain names (control chars, spaces, special symbols)
# Based on RFC 1035 and RFC 5891 (IDNA2008)
FORBIDDEN_CHARS_PATTERN = re.compile(
    r'[\x00-\x1f\x7f'
    r'\s'
    r'!@#$%^&*()+=\[\]{}|\\:;"\'<>,?/`~]'
)

# Documentation addresses (RFC 5737 / RFC 3849); connecting a UDP socket
# to them sends no packets but fails without a route.
_ROUTE_CHECK_TARGETS = {
    AddressFamily.IPV4: (socket.AF_INET, ("192.0.2.1", 9)),
    AddressFamily.IPV6: (socket.AF_INET6, ("2001:db8::1", 9)),
}


def is_ipv4_address(value: str) -> bool:
    """Test if value can be parsed as an IPv4 address (dotted quad)."""
    if not isinstance(value, str) or not value:
        return False
    try:
        ipaddress.IPv4Address(value)
    except ValueError:
        return False
    return True


def is_ipv6_address(value: str) -> bool:
    """Test if value can be parsed as an IPv6 address, zone suffix allowed."""
    if not isinstance(value, str) or not value:
        return False
    try:
        ipaddress.IPv6Address(value)
    except ValueError:
        return False
    return True


def is_ip_address(value: str) -> bool:
    """Test if value can be parsed as an IP address of either family."""
    return is_ipv4_address(value) or is_ipv6_address(value)


def address_family(value: str) -> Optional[AddressFamily]:
    """Return the family of an address literal, or None for anything else."""
    if is_ipv4_address(value):
        return AddressFamily.IPV4
    if is_ipv6_address(value):
        return AddressFamily.IPV6
    return None


def requested_families(
    version_filter: IPVersionFilter,
    supported: Optional[frozenset] = None,
) -> frozenset:
    """
    Address families to ask the query subsystem for.

    Args:
        version_filter: The resolver's IP version filter
        supported: Families the host supports; detected when not given

    Returns:
        Frozen set of AddressFamily members
    """
    if version_filter is IPVersionFilter.IPV4_ONLY:
        return frozenset({AddressFamily.IPV4})
    if version_filter is IPVersionFilter.IPV6_ONLY:
        return frozenset({AddressFamily.IPV6})
    if version_filter is IPVersionFilter.ANY:
        return frozenset(AddressFamily)
    if supported is None:
        supported = host_supported_families()
    return supported


def host_supported_families() -> frozenset:
    """
    Address families the host can currently reach.

    Falls back to IPv4 when no family reports a route, so that a host with
    no detectable route still gets an answer instead of an empty query.
    """
    families = set()
    for family, (af, remote) in _ROUTE_CHECK_TARGETS.items():
        try:
            with socket.socket(af, socket.SOCK_DGRAM) as sock:
                sock.connect(remote)
        except OSError:
            continue
        families.add(family)
    if not families:
        families.add(AddressFamily.IPV4)
    return frozenset(families)


def normalize_target(raw_target: str) -> str:
    """
    Convert a resolution target to canonical form.

    IP literals are returned stripped and unchanged. Domain names are
    lowercased, lose a trailing dot, and are IDNA-encoded when they contain
    international characters.

    Args:
        raw_target: Domain name or IP address literal

    Returns:
        Canonical target string

    Raises:
        InvalidTargetError: If the target is empty, contains forbidden
            characters, or cannot be IDNA-encoded
    """
    if not isinstance(raw_target, str) or not raw_target.strip():
        raise InvalidTargetError(
            code="empty_input",
            message="Resolution target is empty",
            details={"raw_input": raw_target},
        )

    target = raw_target.strip()
    if is_ip_address(target):
        return target

    if FORBIDDEN_CHARS_PATTERN.search(target):
        raise InvalidTargetError(
            code="forbidden_chars",
            message="Domain contains forbidden characters",
            details={
                "raw_input": raw_target,
                "forbidden_chars": FORBIDDEN_CHARS_PATTERN.findall(target),
            },
        )

    target = target.lower().rstrip(".")
    if not target:
        raise InvalidTargetError(
            code="empty_input",
            message="Resolution target is empty",
            details={"raw_input": raw_target},
        )

    if any(ord(c) > 127 for c in target):
        try:
            target = idna.encode(target, uts46=True).decode("ascii")
        except idna.IDNAError as e:
            raise InvalidTargetError(
                code="idna_error",
                message=f"IDNA encoding failed: {e}",
                details={"domain": raw_target, "idna_error": str(e)},
            ) from e

    return target
