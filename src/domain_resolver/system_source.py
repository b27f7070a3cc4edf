"""
System resolver query source.

Looks addresses up with socket.getaddrinfo(), so names are answered the
way every other program on the host sees them: the hosts file, nsswitch
modules (mDNS for .local names where one is installed) and the
configured DNS servers. getaddrinfo() reports no TTL, so this source
re-polls at a fixed interval.
"""

import socket
from typing import Optional

from .audit_logger import AuditLogger
from .config import SystemSourceConfig
from .enums import AddressFamily
from .exceptions import DomainNotFoundError, QueryError, QueryTimeoutError
from .query_source import PollingQuerySource


SOCKET_FAMILIES = {
    AddressFamily.IPV4: socket.AF_INET,
    AddressFamily.IPV6: socket.AF_INET6,
}

# "Name exists, but not with this family"; missing on some platforms.
_NO_DATA_ERRORS = frozenset(
    code for code in (getattr(socket, "EAI_NODATA", None), getattr(socket, "EAI_ADDRFAMILY", None))
    if code is not None
)


class SystemQuerySource(PollingQuerySource):
    """
    Query source backed by the host's own resolver.

    getaddrinfo() errors are mapped to the QueryError family:
    - EAI_NONAME -> DomainNotFoundError if the name has no address of any
      family, otherwise no addresses for the requested family
    - EAI_NODATA / EAI_ADDRFAMILY -> no addresses for that family
    - EAI_AGAIN -> QueryTimeoutError
    - anything else -> QueryError
    """

    component = "SystemQuerySource"

    def __init__(
        self,
        config: Optional[SystemSourceConfig] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        config = config or SystemSourceConfig()
        super().__init__(
            refresh_interval=config.refresh_interval,
            min_refresh=config.min_refresh,
            max_refresh=config.max_refresh,
            one_shot=config.one_shot,
            logger=logger,
        )
        self._config = config

    def _lookup(self, target: str, family: AddressFamily) -> tuple[list[str], Optional[int]]:
        try:
            infos = socket.getaddrinfo(
                target, None, SOCKET_FAMILIES[family], socket.SOCK_STREAM,
            )
        except socket.gaierror as e:
            if e.errno in _NO_DATA_ERRORS:
                return [], None
            if e.errno == socket.EAI_NONAME:
                if self._name_exists(target):
                    return [], None
                raise DomainNotFoundError(
                    f"Domain not found: {target}",
                    details={"target": target, "family": family.value},
                ) from e
            if e.errno == socket.EAI_AGAIN:
                raise QueryTimeoutError(
                    f"System resolver could not answer for {target} in time: {e}",
                    details={"target": target, "family": family.value},
                ) from e
            raise QueryError(
                f"System resolver failed for {target}: {e}",
                details={"target": target, "family": family.value, "errno": e.errno},
            ) from e
        except UnicodeError as e:
            raise DomainNotFoundError(
                f"Domain not found: {target}",
                details={"target": target, "error": str(e)},
            ) from e

        addresses: list[str] = []
        for info in infos:
            address = info[4][0]
            if address not in addresses:
                addresses.append(address)
        return addresses, None

    @staticmethod
    def _name_exists(target: str) -> bool:
        """True if the name resolves to an address of any family."""
        try:
            return bool(socket.getaddrinfo(target, None, socket.AF_UNSPEC, socket.SOCK_STREAM))
        except (socket.gaierror, UnicodeError):
            return False
