"""Base upstream client and error taxonomy.

Every outbound HTTP call (Strava subscriptions, Strava activities,
OpenWeatherMap) goes through ``UpstreamClient._request`` so that status
handling is identical across services.

## Error Taxonomy

- ``UpstreamError``: network failure or non-2xx response. Recoverable; aborts
  the current operation only.
- ``CredentialExpired``: 401 from Strava. The bearer token must be refreshed
  by the (external) token workflow.
- ``NotFound``: 404. Treated as "nothing to do" by the enrichment pipeline.
- ``RateLimitError``: 429, with ``retry_after`` when the server sends one.

## Retries

Transport-level failures (timeouts, connection errors) are retried with
tenacity when a client is built with ``max_attempts > 1``. The subscription
manager uses retries; the enrichment pipeline does not, since a failed
enrichment is dropped rather than retried in-line.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)


class UpstreamError(Exception):
    """Base exception for upstream service errors."""

    def __init__(
        self,
        message: str,
        service: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message)
        self.service = service
        self.status_code = status_code
        self.response_body = response_body


class CredentialExpired(UpstreamError):
    """Raised when the bearer credential is rejected (401)."""

    pass


class NotFound(UpstreamError):
    """Raised when the requested resource does not exist or is not visible."""

    pass


class RateLimitError(UpstreamError):
    """Raised when the upstream rate limit is exceeded."""

    def __init__(
        self,
        service: str,
        retry_after: int | None = None,
        status_code: int | None = 429,
    ):
        super().__init__(
            f"Rate limit exceeded for {service}",
            service=service,
            status_code=status_code,
        )
        self.retry_after = retry_after


class UpstreamClient:
    """Shared HTTP plumbing for upstream services.

    Attributes:
        name: Service name used in errors and logs
        base_url: Base URL for the API

    A client may be handed an existing ``httpx.AsyncClient`` (shared pool,
    or a ``MockTransport`` in tests); otherwise it creates its own lazily
    and closes it in ``aclose``.
    """

    name: str
    base_url: str

    def __init__(
        self,
        timeout: float = 10.0,
        max_attempts: int = 1,
        client: httpx.AsyncClient | None = None,
        user_agent: str | None = None,
    ):
        """Initialize the client.

        Args:
            timeout: Request timeout in seconds
            max_attempts: Total attempts for transport-level failures
            client: Optional pre-built HTTP client
            user_agent: User-Agent string for requests
        """
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self.user_agent = user_agent or "strava-weather/0.1.0"
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> UpstreamClient:
        self._get_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _get_default_headers(self) -> dict[str, str]:
        return {
            "User-Agent": self.user_agent,
            "Accept": "application/json",
        }

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        json: Any = None,
        data: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """Send a request and map error statuses onto the error taxonomy.

        Raises:
            UpstreamError: On transport failure or an unexpected status
            CredentialExpired: On 401
            NotFound: On 404
            RateLimitError: On 429
        """
        request_headers = self._get_default_headers()
        if headers:
            request_headers.update(headers)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=8),
            retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    response = await self._get_client().request(
                        method,
                        url,
                        params=params,
                        headers=request_headers,
                        json=json,
                        data=data,
                        timeout=timeout if timeout is not None else self.timeout,
                    )
        except httpx.HTTPError as e:
            raise UpstreamError(
                f"{method} {url} failed: {e.__class__.__name__}: {e}",
                service=self.name,
            ) from e

        self._raise_for_status(response)
        return response

    def _raise_for_status(self, response: httpx.Response) -> None:
        status_code = response.status_code
        if status_code < 400:
            return

        if status_code == 401:
            raise CredentialExpired(
                f"{self.name} rejected the credential",
                service=self.name,
                status_code=status_code,
                response_body=response.text,
            )
        if status_code == 404:
            raise NotFound(
                f"{self.name} resource not found or not accessible",
                service=self.name,
                status_code=status_code,
                response_body=response.text,
            )
        if status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                self.name,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        raise UpstreamError(
            f"{self.name} request failed: {status_code}",
            service=self.name,
            status_code=status_code,
            response_body=response.text,
        )

    @staticmethod
    def _json(response: httpx.Response, service: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(
                f"Failed to parse response: {e}",
                service=service,
                status_code=response.status_code,
                response_body=response.text,
            ) from e
