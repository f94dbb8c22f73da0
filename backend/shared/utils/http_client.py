"""
Async HTTP client wrapper for data source requests.
Classifies every failure into a FetchError and records metrics per request.

The client makes exactly one attempt per call. Retries and call budgeting
belong to the fetch coordinator so that every attempt is counted.
"""
from __future__ import annotations

import time
from typing import Any, Optional

import httpx

from shared.config import get_settings
from shared.errors import DecodingError, NetworkError, RateLimitedError, ServerError
from shared.utils.logging import get_logger
from shared.utils.metrics import PROVIDER_LATENCY, PROVIDER_REQUESTS

logger = get_logger(__name__)


def _retry_after(resp: httpx.Response) -> Optional[float]:
    raw = resp.headers.get("Retry-After")
    if raw is None:
        return None
    try:
        return max(0.0, float(raw))
    except ValueError:
        return None


class ProviderHTTPClient:
    """
    Async HTTP client tailored for sports data provider APIs.
    Handles timeouts and failure classification.
    """

    def __init__(
        self,
        provider_name: str,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout_s: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._provider = provider_name
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_s or get_settings().request_timeout_s
        self._default_headers = headers or {}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def start(self) -> None:
        """Initialize the underlying httpx client."""
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._default_headers,
            timeout=httpx.Timeout(self._timeout, connect=5.0),
            follow_redirects=True,
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
            transport=self._transport,
        )

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get_json(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        extra_headers: dict[str, str] | None = None,
        endpoint: str = "unknown",
    ) -> Any:
        """
        Perform a single GET request and decode the JSON body.

        Args:
            path: API path relative to base_url.
            params: Query parameters.
            extra_headers: Request-specific headers.
            endpoint: Endpoint label for metrics.

        Returns:
            The decoded JSON body.

        Raises:
            RateLimitedError: On HTTP 429, carrying Retry-After when sent.
            ServerError: On any other non-2xx response.
            NetworkError: On timeouts and transport failures.
            DecodingError: If the body is not valid JSON.
        """
        if not self._client:
            raise RuntimeError("ProviderHTTPClient not started. Call start() first.")

        start_time = time.perf_counter()
        status = "unknown"
        try:
            resp = await self._client.get(path, params=params, headers=extra_headers)
            status = str(resp.status_code)

            if resp.status_code == 429:
                retry_after = _retry_after(resp)
                logger.warning(
                    "provider_rate_limited",
                    provider=self._provider,
                    path=path,
                    retry_after=retry_after,
                )
                raise RateLimitedError(retry_after=retry_after, remote=True)

            if resp.status_code >= 400:
                logger.warning(
                    "provider_http_error",
                    provider=self._provider,
                    path=path,
                    status=resp.status_code,
                )
                raise ServerError(resp.status_code, resp.text)

            try:
                body = resp.json()
            except ValueError as exc:
                status = "decode_error"
                logger.warning("provider_invalid_json", provider=self._provider, path=path)
                raise DecodingError(f"Invalid JSON from {path}") from exc

            logger.debug(
                "provider_request_success",
                provider=self._provider,
                path=path,
                status=resp.status_code,
                latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            return body

        except httpx.TimeoutException as exc:
            status = "timeout"
            logger.warning("provider_timeout", provider=self._provider, path=path)
            raise NetworkError(f"Timeout requesting {path}") from exc

        except httpx.TransportError as exc:
            status = "transport_error"
            logger.warning(
                "provider_transport_error",
                provider=self._provider,
                path=path,
                error=str(exc),
            )
            raise NetworkError(f"Transport failure requesting {path}: {exc}") from exc

        finally:
            PROVIDER_LATENCY.labels(provider=self._provider).observe(time.perf_counter() - start_time)
            PROVIDER_REQUESTS.labels(provider=self._provider, endpoint=endpoint, status=status).inc()
