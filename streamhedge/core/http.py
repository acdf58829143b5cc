"""
Shared HTTP transport for the ledger and venue adapters.

Only read-only GETs go through here; the venue has its own client. A GET
may be retried on transport failure, but by default gets one attempt since
the next poll already retries.
"""

from typing import Any, Callable, Optional

import httpx
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from streamhedge.core.config import Settings, get_settings
from streamhedge.core.errors import ProviderError, RateLimitError
from streamhedge.core.logging import get_logger

logger = get_logger("http")

TRANSIENT_ERRORS = (httpx.TimeoutException, httpx.NetworkError)


class HttpClient:
    """One pooled ``httpx.Client`` with timeout, retry and status mapping."""

    def __init__(
        self,
        timeout: Optional[int] = None,
        max_retries: Optional[int] = None,
        headers: Optional[dict[str, str]] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.timeout = timeout or settings.http_timeout
        self.max_attempts = max_retries or settings.http_max_retries
        self.default_headers = headers or {}
        self._client: Optional[httpx.Client] = None

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout, headers=self.default_headers)
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def get(
        self,
        url: str,
        *,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        provider_name: str = "unknown",
    ) -> Any:
        """
        GET and decode JSON, retrying transport errors up to ``max_attempts``.

        Raises:
            RateLimitError: On 429
            ProviderError: On transport failure, status >= 400 or a non-JSON body
        """
        logger.debug(f"GET {url} params={params}")

        def send() -> httpx.Response:
            retrying = Retrying(
                retry=retry_if_exception_type(TRANSIENT_ERRORS),
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_exponential(multiplier=0.5, min=0.5, max=2),
                reraise=True,
            )
            return retrying(self.client.get, url, params=params, headers=headers)

        return self._send("GET", url, send, provider_name)

    def _send(
        self,
        method: str,
        url: str,
        send: Callable[[], httpx.Response],
        provider_name: str,
    ) -> Any:
        try:
            response = send()
        except httpx.TimeoutException as e:
            logger.warning(f"{method} {url} timed out after {self.timeout}s")
            raise ProviderError(
                f"Request timeout: {url}", provider=provider_name, recoverable=True
            ) from e
        except httpx.NetworkError as e:
            logger.warning(f"{method} {url} network error: {e}")
            raise ProviderError(
                f"Network error: {e}", provider=provider_name, recoverable=True
            ) from e
        return self._decode(response, provider_name)

    @staticmethod
    def _decode(response: httpx.Response, provider_name: str) -> Any:
        status = response.status_code
        if status == 429:
            retry_after = response.headers.get("Retry-After", "")
            raise RateLimitError(
                "Rate limit exceeded",
                provider=provider_name,
                retry_after=int(retry_after) if retry_after.isdigit() else None,
            )
        if status >= 400:
            logger.error(f"{provider_name} HTTP {status}: {response.text[:200]}")
            raise ProviderError(
                f"HTTP {status}: {response.reason_phrase}",
                provider=provider_name,
                recoverable=status >= 500,
            )
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(
                f"Invalid JSON from {response.url}", provider=provider_name, recoverable=True
            ) from e


_default_client: Optional[HttpClient] = None


def get_http_client() -> HttpClient:
    """Process-wide client shared by providers that are not handed one."""
    global _default_client
    if _default_client is None:
        _default_client = HttpClient()
    return _default_client
