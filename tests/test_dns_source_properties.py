"""
Property-based tests for the dnspython-backed query source.

dns.resolver.Resolver is patched, so no DNS traffic is generated.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import dns.exception
import dns.resolver
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from domain_resolver.config import DNSSourceConfig
from domain_resolver.dns_source import DNSQuerySource, RDTYPES
from domain_resolver.enums import AddressFamily, IPVersionFilter, ResolverErrorCode
from domain_resolver.exceptions import (
    DomainNotFoundError,
    QueryError,
    QueryTimeoutError,
    ResolverError,
)
from domain_resolver.models import Timeouts
from domain_resolver.resolver import resolve_once


class FakeAnswer:
    """Iterable stand-in for dns.resolver.Answer."""

    def __init__(self, addresses: list[str], ttl: int = 300) -> None:
        self._rdatas = [SimpleNamespace(address=a) for a in addresses]
        self.rrset = SimpleNamespace(ttl=ttl)

    def __iter__(self):
        return iter(self._rdatas)


def prepared_source(config: DNSSourceConfig = None) -> tuple[DNSQuerySource, MagicMock]:
    """A source whose resolver is a mock; returns (source, mock resolver)."""
    source = DNSQuerySource(config)
    with patch("domain_resolver.dns_source.dns.resolver.Resolver") as resolver_class:
        source._prepare()
    return source, resolver_class.return_value


class TestDNSLookupProperty:
    """Property tests for a single A/AAAA lookup."""

    @given(
        addresses=st.lists(st.ip_addresses(v=4).map(str), min_size=1, max_size=5, unique=True),
        ttl=st.integers(min_value=0, max_value=86400),
    )
    @settings(max_examples=50)
    def test_a_answer_becomes_addresses_and_ttl(self, addresses: list[str], ttl: int) -> None:
        """*For any* A answer, the lookup SHALL return its addresses in order and its TTL."""
        source, resolver = prepared_source()
        resolver.resolve.return_value = FakeAnswer(addresses, ttl)

        assert source._lookup("example.com", AddressFamily.IPV4) == (addresses, ttl)
        resolver.resolve.assert_called_once_with("example.com", "A", lifetime=5.0)

    def test_aaaa_lookup_for_ipv6(self) -> None:
        source, resolver = prepared_source()
        resolver.resolve.return_value = FakeAnswer(["2001:db8::1"], 60)

        assert source._lookup("example.com", AddressFamily.IPV6) == (["2001:db8::1"], 60)
        assert resolver.resolve.call_args[0][1] == RDTYPES[AddressFamily.IPV6] == "AAAA"

    def test_nxdomain_is_domain_not_found(self) -> None:
        source, resolver = prepared_source()
        resolver.resolve.side_effect = dns.resolver.NXDOMAIN()

        with pytest.raises(DomainNotFoundError):
            source._lookup("missing.example", AddressFamily.IPV4)

    def test_no_answer_is_empty(self) -> None:
        source, resolver = prepared_source()
        resolver.resolve.side_effect = dns.resolver.NoAnswer()

        assert source._lookup("example.com", AddressFamily.IPV6) == ([], None)

    def test_timeout_is_query_timeout(self) -> None:
        source, resolver = prepared_source()
        resolver.resolve.side_effect = dns.exception.Timeout()

        with pytest.raises(QueryTimeoutError):
            source._lookup("example.com", AddressFamily.IPV4)

    def test_other_dns_errors_are_query_errors(self) -> None:
        source, resolver = prepared_source()
        resolver.resolve.side_effect = dns.resolver.NoNameservers()

        with pytest.raises(QueryError) as exc_info:
            source._lookup("example.com", AddressFamily.IPV4)

        assert not isinstance(exc_info.value, (QueryTimeoutError, DomainNotFoundError))
        assert exc_info.value.details["error_type"] == "NoNameservers"


class TestDNSResolverConfigurationProperty:
    """Tests for how the dnspython resolver is configured."""

    def test_lookup_before_prepare_is_query_error(self) -> None:
        with pytest.raises(QueryError) as exc_info:
            DNSQuerySource()._lookup("example.com", AddressFamily.IPV4)

        assert exc_info.value.code == "not_prepared"

    @given(nameservers=st.lists(st.ip_addresses().map(str), min_size=1, max_size=3, unique=True))
    @settings(max_examples=25)
    def test_explicit_nameservers_skip_system_config(self, nameservers: list[str]) -> None:
        """*For any* explicit nameservers, the system resolver config SHALL not be read."""
        config = DNSSourceConfig(nameservers=nameservers, lifetime=2.5)
        with patch("domain_resolver.dns_source.dns.resolver.Resolver") as resolver_class:
            resolver = DNSQuerySource(config)._create_resolver()

        resolver_class.assert_called_once_with(configure=False)
        assert resolver.nameservers == nameservers
        assert resolver.lifetime == 2.5

    def test_system_configuration_by_default(self) -> None:
        with patch("domain_resolver.dns_source.dns.resolver.Resolver") as resolver_class:
            DNSQuerySource()._create_resolver()

        resolver_class.assert_called_once_with()

    def test_unreadable_system_configuration_is_query_error(self) -> None:
        with patch(
            "domain_resolver.dns_source.dns.resolver.Resolver",
            side_effect=dns.resolver.NoResolverConfiguration(),
        ):
            with pytest.raises(QueryError):
                DNSQuerySource()._create_resolver()


class TestDNSSourceWithResolverProperty:
    """End-to-end tests: resolver, DNS source and mocked dnspython."""

    @staticmethod
    def _answers(records: dict):
        def resolve(target, rdtype, lifetime=None):
            if target not in records:
                raise dns.resolver.NXDOMAIN()
            addresses = records[target].get(rdtype)
            if not addresses:
                raise dns.resolver.NoAnswer()
            return FakeAnswer(addresses, 120)
        return resolve

    def test_resolve_once_collects_both_families(self) -> None:
        records = {"example.com": {"A": ["192.0.2.1"], "AAAA": ["2001:db8::1"]}}
        with patch("domain_resolver.dns_source.dns.resolver.Resolver") as resolver_class:
            resolver_class.return_value.resolve.side_effect = self._answers(records)
            addresses = resolve_once(
                "Example.com",
                Timeouts(0.2, 0.0, 5.0),
                IPVersionFilter.ANY,
                source=DNSQuerySource(DNSSourceConfig(one_shot=True)),
            )

        assert addresses == ["192.0.2.1", "2001:db8::1"]

    def test_resolve_once_reports_nxdomain(self) -> None:
        with patch("domain_resolver.dns_source.dns.resolver.Resolver") as resolver_class:
            resolver_class.return_value.resolve.side_effect = self._answers({})
            with pytest.raises(ResolverError) as exc_info:
                resolve_once(
                    "missing.example",
                    Timeouts(0.0, 0.0, 5.0),
                    IPVersionFilter.IPV4_ONLY,
                    source=DNSQuerySource(),
                )

        assert exc_info.value.kind is ResolverErrorCode.NO_SUCH_DOMAIN

    def test_resolve_once_reports_missing_family(self) -> None:
        records = {"example.com": {"A": ["192.0.2.1"]}}
        with patch("domain_resolver.dns_source.dns.resolver.Resolver") as resolver_class:
            resolver_class.return_value.resolve.side_effect = self._answers(records)
            with pytest.raises(ResolverError) as exc_info:
                resolve_once(
                    "example.com",
                    Timeouts(0.0, 0.0, 5.0),
                    IPVersionFilter.IPV6_ONLY,
                    source=DNSQuerySource(),
                )

        assert exc_info.value.kind is ResolverErrorCode.NO_SUCH_ADDRESS
