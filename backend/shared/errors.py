"""
Classified fetch errors.

Every failure that leaves a data source is one of these. The coordinator
decides retries from ``retryable``; callers match on the subclass or ``kind``.
"""
from __future__ import annotations

from typing import Optional

from shared.models.enums import FetchErrorKind


class FetchError(Exception):
    """Base class for all data-fetch failures."""

    kind: FetchErrorKind = FetchErrorKind.NETWORK
    retryable: bool = False


class InvalidRequestError(FetchError):
    """Malformed query. Programmer error, never retried."""

    kind = FetchErrorKind.INVALID_REQUEST


class NetworkError(FetchError):
    """Transport failure or timeout."""

    kind = FetchErrorKind.NETWORK
    retryable = True


class DecodingError(FetchError):
    """Response body did not match the expected shape."""

    kind = FetchErrorKind.DECODING


class ServerError(FetchError):
    """Non-2xx response other than 429. 5xx is retryable, 4xx is not."""

    kind = FetchErrorKind.SERVER

    def __init__(self, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"HTTP {status_code}: {body[:200]}")

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.status_code >= 500


class RateLimitedError(FetchError):
    """Local call budget exhausted or remote 429."""

    kind = FetchErrorKind.RATE_LIMITED

    def __init__(self, retry_after: Optional[float] = None, remote: bool = False) -> None:
        self.retry_after = retry_after
        self.remote = remote
        source = "remote" if remote else "local budget"
        if retry_after is not None:
            super().__init__(f"Rate limited ({source}); retry after {retry_after:.0f}s")
        else:
            super().__init__(f"Rate limited ({source})")
