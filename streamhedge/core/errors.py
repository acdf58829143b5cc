"""
Exception hierarchy.

Everything raised on purpose derives from StreamHedgeError. Provider errors
say whether waiting for the next poll could help (``recoverable``).
Business-rule rejections are values, not exceptions: see domain.models.Rejected.
"""

from typing import Any, Optional


class StreamHedgeError(Exception):
    code = "STREAMHEDGE_ERROR"

    def __init__(self, message: str, *, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = dict(details or {})

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message, **self.details}


class ConfigurationError(StreamHedgeError):
    code = "CONFIG_ERROR"


class ProviderError(StreamHedgeError):
    """Upstream unreachable, bad status, or a venue-level error list."""

    code = "PROVIDER_ERROR"
    default_recoverable = True

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        recoverable: Optional[bool] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.provider = provider
        self.recoverable = self.default_recoverable if recoverable is None else recoverable
        super().__init__(
            message,
            details={**(details or {}), "provider": provider, "recoverable": self.recoverable},
        )


class DataNotAvailableError(ProviderError):
    """Empty book side, unknown pair, nothing to parse."""

    code = "DATA_NOT_AVAILABLE"


class RateLimitError(ProviderError):
    code = "RATE_LIMIT"

    def __init__(self, message: str, *, provider: str, retry_after: Optional[int] = None, **kwargs):
        self.retry_after = retry_after
        details = {**kwargs.pop("details", {}), "retry_after": retry_after}
        super().__init__(message, provider=provider, details=details, **kwargs)


class AuthenticationError(ProviderError):
    """Keys missing (raised before anything is sent) or rejected by the venue."""

    code = "AUTH_ERROR"
    default_recoverable = False


class ExecutionError(ProviderError):
    """The venue refused the order, or the book cannot fill it."""

    code = "EXECUTION_ERROR"
    default_recoverable = False


class ClassificationError(StreamHedgeError):
    """A ledger action has a malformed field."""

    code = "CLASSIFICATION_ERROR"

    def __init__(self, message: str, *, field: Optional[str] = None, **kwargs):
        self.field = field
        details = kwargs.pop("details", {})
        if field:
            details = {**details, "field": field}
        super().__init__(message, details=details)


class InvalidTransitionError(StreamHedgeError):
    """A trade state change that would go backwards or leave a terminal state."""

    code = "INVALID_TRANSITION"

    def __init__(self, message: str, *, trade_id: str, current: str, target: str):
        self.trade_id = trade_id
        super().__init__(
            message, details={"trade_id": trade_id, "current": current, "target": target}
        )
