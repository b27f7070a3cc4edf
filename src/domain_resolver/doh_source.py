"""
DNS-over-HTTPS query source.

Queries a JSON DoH endpoint (the application/dns-json API offered by
Cloudflare, Google and others) with httpx, enforcing TLS, and polls after
the answer TTL like the plain DNS source.
"""

from typing import Any, Optional
from urllib.parse import urlparse

import httpx

from .audit_logger import AuditLogger
from .config import DoHSourceConfig
from .enums import AddressFamily
from .exceptions import DomainNotFoundError, QueryError, QueryTimeoutError
from .query_source import PollingQuerySource


# DNS RR type numbers as used in the JSON API
RR_TYPES = {
    AddressFamily.IPV4: 1,   # A
    AddressFamily.IPV6: 28,  # AAAA
}

RR_TYPE_NAMES = {
    AddressFamily.IPV4: "A",
    AddressFamily.IPV6: "AAAA",
}

# DNS RCODEs reported in the "Status" field
RCODE_NOERROR = 0
RCODE_NXDOMAIN = 3


class DoHQuerySource(PollingQuerySource):
    """
    DNS-over-HTTPS query source with TLS enforcement.

    Response handling:
    - Status 0 with matching answers -> addresses
    - Status 0 without matching answers -> no addresses for that family
    - Status 3 (NXDOMAIN) -> DomainNotFoundError
    - any other status, HTTP error or malformed JSON -> QueryError
    - request timeout -> QueryTimeoutError
    """

    component = "DoHQuerySource"

    def __init__(
        self,
        config: Optional[DoHSourceConfig] = None,
        logger: Optional[AuditLogger] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        """
        Initialize the DoH source.

        Args:
            config: Source configuration; defaults to DoHSourceConfig()
            logger: Optional audit logger
            client: Optional preconfigured httpx.Client (not closed by the source)
        """
        config = config or DoHSourceConfig()
        super().__init__(
            refresh_interval=config.refresh_interval,
            min_refresh=config.min_refresh,
            max_refresh=config.max_refresh,
            one_shot=config.one_shot,
            logger=logger,
        )
        self._config = config
        self._client = client
        self._owns_client = client is None

    @property
    def endpoint(self) -> str:
        return self._config.endpoint

    def _validate_endpoint_url(self, endpoint: str) -> None:
        """
        Validate that the endpoint uses HTTPS (TLS).

        Raises:
            QueryError: If the endpoint does not use HTTPS
        """
        parsed = urlparse(endpoint)
        if parsed.scheme.lower() != "https" or not parsed.netloc:
            raise QueryError(
                f"DoH endpoint must use HTTPS: {endpoint}",
                details={"endpoint": endpoint, "scheme": parsed.scheme},
                code="tls_error",
            )

    def _prepare(self) -> None:
        self._validate_endpoint_url(self._config.endpoint)
        if self._client is None:
            self._client = httpx.Client(
                verify=True,  # TLS certificate verification enforced
                timeout=httpx.Timeout(self._config.timeout),
                follow_redirects=True,
            )

    def _close(self) -> None:
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None

    def _lookup(self, target: str, family: AddressFamily) -> tuple[list[str], Optional[int]]:
        if self._client is None:
            raise QueryError(
                "DoH source used before its HTTP client was created",
                details={"target": target},
                code="not_prepared",
            )
        rr_name = RR_TYPE_NAMES[family]
        headers = {"Accept": "application/dns-json"}
        headers.update(self._config.headers)

        try:
            response = self._client.get(
                self._config.endpoint,
                params={"name": target, "type": rr_name},
                headers=headers,
            )
        except httpx.TimeoutException as e:
            raise QueryTimeoutError(
                f"DoH request for {target} {rr_name} timed out after {self._config.timeout}s",
                details={"target": target, "rdtype": rr_name},
            ) from e
        except httpx.HTTPError as e:
            raise QueryError(
                f"DoH request for {target} {rr_name} failed: {e}",
                details={"target": target, "rdtype": rr_name, "endpoint": self._config.endpoint},
            ) from e

        if response.status_code >= 400:
            raise QueryError(
                f"DoH server error: {response.status_code}",
                details={"target": target, "http_status_code": response.status_code},
                code="server_error",
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise QueryError(
                f"Failed to parse DoH response: {e}",
                details={"target": target},
                code="parse_error",
            ) from e

        return self._parse_response(target, family, payload)

    def _parse_response(
        self,
        target: str,
        family: AddressFamily,
        payload: Any,
    ) -> tuple[list[str], Optional[int]]:
        """
        Extract addresses of one family from a DoH JSON payload.

        Only A/AAAA answers of the requested type are used; CNAME chain
        entries and other fields are ignored.
        """
        if not isinstance(payload, dict) or "Status" not in payload:
            raise QueryError(
                "DoH response does not contain a Status field",
                details={"target": target},
                code="parse_error",
            )

        status = payload["Status"]
        if status == RCODE_NXDOMAIN:
            raise DomainNotFoundError(
                f"Domain not found: {target}",
                details={"target": target},
            )
        if status != RCODE_NOERROR:
            raise QueryError(
                f"DoH query for {target} failed with DNS status {status}",
                details={"target": target, "dns_status": status},
                code="server_error",
            )

        addresses: list[str] = []
        ttls: list[int] = []
        answers = payload.get("Answer", [])
        if not isinstance(answers, list):
            answers = [answers]
        malformed = [a for a in answers if not isinstance(a, dict)]
        if malformed and self._logger:
            self._logger.warn(
                self.component,
                f"Skipping {len(malformed)} malformed DoH answer entries",
                {"target": target, "endpoint": self._config.endpoint},
            )
        for answer in answers:
            if not isinstance(answer, dict) or answer.get("type") != RR_TYPES[family]:
                continue
            data = answer.get("data")
            if isinstance(data, str) and data and data not in addresses:
                addresses.append(data)
                ttl = answer.get("TTL")
                if isinstance(ttl, int):
                    ttls.append(ttl)

        return addresses, (min(ttls) if ttls else None)
