"""Shared HTTP transport for ticket providers.

`HttpTransport` wraps a lazily created `httpx.AsyncClient` and turns
every failure mode into a `ProviderError` subclass, so providers only
ever see decoded JSON or one of our exceptions:

    401/403           -> ProviderPermissionError
    404               -> NotFoundError
    429               -> RateLimitError (retry_after from Retry-After)
    other 4xx/5xx     -> ProviderError
    timeout           -> NetworkError(timeout=True)
    connection errors -> NetworkError
    non-JSON body     -> ParsingError

There are no retries at this layer; callers decide what to do.
"""

from __future__ import annotations

import time
from typing import Any

import httpx

from tickethub.constants import DEFAULT_HTTP_TIMEOUT_SECONDS, DEFAULT_RETRY_AFTER_SECONDS
from tickethub.exceptions import (
    NetworkError,
    NotFoundError,
    ParsingError,
    ProviderError,
    ProviderPermissionError,
    RateLimitError,
)
from tickethub.logging import get_logger

logger = get_logger(__name__)


def _retry_after(response: httpx.Response) -> int:
    value = response.headers.get("Retry-After")
    try:
        return int(value) if value is not None else DEFAULT_RETRY_AFTER_SECONDS
    except ValueError:
        return DEFAULT_RETRY_AFTER_SECONDS


class HttpTransport:
    """JSON-over-HTTP client bound to one provider.

    Attributes:
        provider: Provider name used in raised errors and log fields.
        base_url: Base URL every request path is resolved against.
    """

    def __init__(
        self,
        provider: str,
        base_url: str,
        headers: dict[str, str] | None = None,
        auth: tuple[str, str] | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            provider: Provider name ("jira", "github", "slack").
            base_url: API root, e.g. "https://api.github.com".
            headers: Default headers sent with every request.
            auth: Optional (username, password) basic-auth pair.
            timeout: Request timeout in seconds.
            client: Pre-built client to use instead of creating one. The
                transport does not close an injected client.
        """
        self.provider = provider
        self.base_url = base_url.rstrip("/")
        self._headers = {"Accept": "application/json", **(headers or {})}
        self._auth = auth
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client.

        The client is created lazily and reused for all requests.
        """
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._headers,
                auth=self._auth,
                timeout=self._timeout,
            )
        return self._client

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    async def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Args:
            method: HTTP method.
            path: Path relative to ``base_url`` or an absolute URL.
            params: Query parameters.
            json: JSON request body.

        Returns:
            The decoded JSON payload.

        Raises:
            ProviderError: Or one of its subclasses, see the module docstring.
        """
        start_time = time.monotonic()
        client = self._get_client()
        url = self._url(path)

        try:
            response = await client.request(
                method,
                url,
                params=params,
                json=json,
                headers=self._headers,
                auth=self._auth if self._auth is not None else httpx.USE_CLIENT_DEFAULT,
            )
            response.raise_for_status()
        except httpx.TimeoutException as e:
            logger.warning(
                "Request timed out",
                extra={"provider": self.provider, "path": path, "error": str(e)},
            )
            raise NetworkError(
                f"Request to {path} timed out", self.provider, timeout=True
            ) from e
        except httpx.HTTPStatusError as e:
            raise self._status_error(e.response, path) from e
        except httpx.RequestError as e:
            logger.warning(
                "Request failed",
                extra={"provider": self.provider, "path": path, "error": str(e)},
            )
            raise NetworkError(
                f"Request to {path} failed: {e}", self.provider, details={"error": str(e)}
            ) from e

        duration_ms = int((time.monotonic() - start_time) * 1000)
        logger.debug(
            "HTTP request completed",
            extra={
                "provider": self.provider,
                "method": method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        try:
            return response.json()
        except ValueError as e:
            raise ParsingError(
                f"Response from {path} is not valid JSON",
                self.provider,
                details={"status_code": response.status_code},
            ) from e

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Shorthand for a GET request."""
        return await self.request("GET", path, params=params)

    def _status_error(self, response: httpx.Response, path: str) -> ProviderError:
        status = response.status_code
        details = {"status_code": status, "path": path}
        logger.warning(
            "HTTP error response",
            extra={"provider": self.provider, "path": path, "status_code": status},
        )

        if status in (401, 403):
            return ProviderPermissionError(
                "Authentication failed or permission denied", self.provider, details
            )
        if status == 404:
            return NotFoundError(f"Resource not found: {path}", self.provider, details)
        if status == 429:
            retry_after = _retry_after(response)
            return RateLimitError(
                f"Rate limited, retry after {retry_after}s",
                self.provider,
                retry_after=retry_after,
                details=details,
            )
        return ProviderError(f"HTTP {status} from {path}", self.provider, details)

    async def close(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None if self._owns_client else self._client
