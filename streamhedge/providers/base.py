"""
Shared plumbing for the ledger and venue adapters.

Subclasses set ``name``, implement ``healthcheck`` and hand back domain
objects. Transport failures surface as ProviderError so callers only ever
catch one family.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from streamhedge.core.cache import CacheManager, get_provider_cache
from streamhedge.core.config import Settings, get_settings
from streamhedge.core.errors import ProviderError
from streamhedge.core.http import HttpClient, get_http_client
from streamhedge.core.logging import LoggerMixin


class ProviderStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNAVAILABLE = "unavailable"


@dataclass
class HealthCheckResult:
    status: ProviderStatus
    message: str
    latency_ms: Optional[float] = None
    details: Optional[dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.status is ProviderStatus.HEALTHY


class BaseProvider(ABC, LoggerMixin):
    """HTTP client, per-provider cache and error mapping for one upstream."""

    name: str = "base"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[HttpClient] = None,
        cache: Optional[CacheManager] = None,
    ):
        self.settings = settings or get_settings()
        self.http = http_client or get_http_client()
        self.cache = cache or get_provider_cache(self.name)
        self.last_error: Optional[Exception] = None
        self._initialized = False

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            self._initialize()
            self._initialized = True

    def _initialize(self) -> None:
        """Client setup deferred to first use. Override where a provider needs it."""

    @abstractmethod
    def healthcheck(self) -> HealthCheckResult:
        ...

    def _check_endpoint(
        self,
        url: str,
        ok_message: str,
        failure_status: ProviderStatus = ProviderStatus.UNAVAILABLE,
    ) -> HealthCheckResult:
        """GET ``url`` and report latency, or ``failure_status`` with the error."""
        started = time.monotonic()
        try:
            self._make_request("get", url)
        except ProviderError as e:
            return HealthCheckResult(status=failure_status, message=f"{self.name}: {e}")
        return HealthCheckResult(
            status=ProviderStatus.HEALTHY,
            message=ok_message,
            latency_ms=(time.monotonic() - started) * 1000,
        )

    def _get_cached(self, key: str) -> Optional[Any]:
        return self.cache.get(f"{self.name}:{key}")

    def _set_cached(self, key: str, value: Any) -> None:
        self.cache.set(f"{self.name}:{key}", value)

    def _make_request(self, method: str, url: str, **kwargs) -> Any:
        """
        Send through the shared client, tagging errors with this provider.

        Raises:
            ProviderError: On any transport, status or decoding failure
        """
        verb = method.lower()
        if verb != "get":
            raise ValueError(f"Unsupported HTTP method: {method}")

        try:
            return self.http.get(url, provider_name=self.name, **kwargs)
        except ProviderError as e:
            self.last_error = e
            raise
        except Exception as e:
            self.last_error = e
            raise ProviderError(
                f"{verb.upper()} {url} failed: {e}",
                provider=self.name,
                recoverable=True,
            ) from e
