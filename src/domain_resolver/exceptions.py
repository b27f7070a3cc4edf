"""
Exception classes for the domain resolver.

All exceptions inherit from DomainResolverError and provide structured
error information with codes, messages, and optional details.

ResolverError is the one error type a resolver reports to its callback.
The QueryError family is raised or emitted by query sources and mapped to
a ResolverErrorCode by the resolver.
"""

from typing import Optional

from .enums import ResolverErrorCode


class DomainResolverError(Exception):
    """Base exception for all domain resolver errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ResolverError(DomainResolverError):
    """
    Reason a resolver was canceled.

    Delivered through the callback's error slot and kept as the resolver's
    cancel_reason; never raised out of Resolver methods.
    """

    DOMAIN = "domain_resolver.ResolverError"

    MESSAGES = {
        ResolverErrorCode.SYSTEM: "Internal system error",
        ResolverErrorCode.UPDATE_TIMEOUT_HIT: "Update timeout hit",
        ResolverErrorCode.CANCEL_TIMEOUT_HIT: "Cancel timeout hit",
        ResolverErrorCode.NO_MORE_RESULTS: "No more results can be expected",
        ResolverErrorCode.SYSTEM_TIMEOUT: "DNS query timed out",
        ResolverErrorCode.NO_SUCH_DOMAIN: "Domain not found",
        ResolverErrorCode.NO_SUCH_ADDRESS: "No address record of the requested family",
    }

    def __init__(
        self,
        code: ResolverErrorCode,
        message: Optional[str] = None,
        details: Optional[dict] = None,
        underlying: Optional[BaseException] = None,
    ) -> None:
        if code is ResolverErrorCode.SYSTEM and underlying is None:
            raise ValueError("SYSTEM errors must wrap an underlying error")
        super().__init__(code.value, message or self.MESSAGES[code], details)
        self.kind = code
        self.underlying = underlying
        if underlying is not None:
            self.__cause__ = underlying

    @property
    def domain(self) -> str:
        return self.DOMAIN

    def to_dict(self) -> dict:
        result = super().to_dict()
        result["domain"] = self.DOMAIN
        if self.underlying is not None:
            result["underlying"] = {
                "error_type": type(self.underlying).__name__,
                "message": str(self.underlying),
            }
        return result


class QueryError(DomainResolverError):
    """Raised when the query subsystem fails in a way it cannot classify."""

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None,
        code: str = "query_error",
    ) -> None:
        super().__init__(code, message, details)


class QueryTimeoutError(QueryError):
    """Raised when a DNS lookup times out."""

    def __init__(self, message: str, details: Optional[dict] = None) -> None:
        super().__init__(message, details, code="query_timeout")


class DomainNotFoundError(QueryError):
    """Raised when the queried domain does not exist (NXDOMAIN)."""

    def __init__(self, message: str, details: Optional[dict] = None) -> None:
        super().__init__(message, details, code="domain_not_found")


class NoAddressRecordError(QueryError):
    """Raised when the domain exists but has no record of the requested families."""

    def __init__(self, message: str, details: Optional[dict] = None) -> None:
        super().__init__(message, details, code="no_address_record")


class InvalidTargetError(DomainResolverError, ValueError):
    """Raised when a resolution target cannot be normalized."""

    pass


class ConfigurationError(DomainResolverError):
    """Raised when a configuration file or value is invalid."""

    pass
