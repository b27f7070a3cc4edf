"""
DNS query source backed by dnspython.

Looks up A records for IPv4 and AAAA records for IPv6 through the system's
configured nameservers (or explicit ones), and keeps polling after the
answer TTL so that address changes reach the resolver.
"""

from typing import Optional

import dns.exception
import dns.resolver

from .audit_logger import AuditLogger
from .config import DNSSourceConfig
from .enums import AddressFamily
from .exceptions import DomainNotFoundError, QueryError, QueryTimeoutError
from .query_source import PollingQuerySource


RDTYPES = {
    AddressFamily.IPV4: "A",
    AddressFamily.IPV6: "AAAA",
}


class DNSQuerySource(PollingQuerySource):
    """
    Unicast DNS query source.

    dnspython exceptions are mapped to the QueryError family:
    - NXDOMAIN -> DomainNotFoundError
    - NoAnswer -> no addresses for that family
    - Timeout / LifetimeTimeout -> QueryTimeoutError
    - any other DNSException -> QueryError
    """

    component = "DNSQuerySource"

    def __init__(
        self,
        config: Optional[DNSSourceConfig] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the DNS source.

        Args:
            config: Source configuration; defaults to DNSSourceConfig()
            logger: Optional audit logger
        """
        config = config or DNSSourceConfig()
        super().__init__(
            refresh_interval=config.refresh_interval,
            min_refresh=config.min_refresh,
            max_refresh=config.max_refresh,
            one_shot=config.one_shot,
            logger=logger,
        )
        self._config = config
        self._resolver: Optional[dns.resolver.Resolver] = None

    def _create_resolver(self) -> dns.resolver.Resolver:
        try:
            if self._config.nameservers:
                resolver = dns.resolver.Resolver(configure=False)
                resolver.nameservers = list(self._config.nameservers)
            else:
                resolver = dns.resolver.Resolver()
        except dns.exception.DNSException as e:
            raise QueryError(
                f"Could not configure DNS resolver: {e}",
                details={"nameservers": self._config.nameservers},
            ) from e
        resolver.lifetime = self._config.lifetime
        return resolver

    def _prepare(self) -> None:
        self._resolver = self._create_resolver()
        if self._logger:
            self._logger.debug(
                self.component,
                "DNS resolver configured",
                {"nameservers": list(self._resolver.nameservers)},
            )

    def _lookup(self, target: str, family: AddressFamily) -> tuple[list[str], Optional[int]]:
        if self._resolver is None:
            raise QueryError(
                "DNS source used before its resolver was configured",
                details={"target": target},
                code="not_prepared",
            )
        rdtype = RDTYPES[family]
        try:
            answer = self._resolver.resolve(
                target,
                rdtype,
                lifetime=self._config.lifetime,
            )
        except dns.resolver.NXDOMAIN as e:
            raise DomainNotFoundError(
                f"Domain not found: {target}",
                details={"target": target, "rdtype": rdtype},
            ) from e
        except dns.resolver.NoAnswer:
            return [], None
        except dns.exception.Timeout as e:
            raise QueryTimeoutError(
                f"DNS query for {target} {rdtype} timed out after {self._config.lifetime}s",
                details={"target": target, "rdtype": rdtype},
            ) from e
        except dns.exception.DNSException as e:
            raise QueryError(
                f"DNS query for {target} {rdtype} failed: {e}",
                details={"target": target, "rdtype": rdtype, "error_type": type(e).__name__},
            ) from e

        addresses = [rdata.address for rdata in answer]
        ttl = answer.rrset.ttl if answer.rrset is not None else None
        return addresses, ttl
