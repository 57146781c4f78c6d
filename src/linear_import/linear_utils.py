from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any, Final

import requests

from .exceptions import ConfigurationError, LinearApiError, RateLimitedError
from .utils import call_with_backoff

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

LINEAR_API_URL: Final[str] = "https://api.linear.app/graphql"
_REQUEST_TIMEOUT_SECONDS: Final[int] = 60
_RATE_LIMIT_STATUS: Final[int] = 429
_UNAUTHORIZED_STATUS: Final[int] = 401


def _retry_after(response: requests.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _is_rate_limited(errors: list[dict[str, Any]]) -> bool:
    return any((error.get("extensions") or {}).get("code") == "RATELIMITED" for error in errors)


class LinearClient:
    """Minimal Linear GraphQL client with rate-limit backoff."""

    def __init__(
        self,
        api_key: str,
        *,
        session: requests.Session | None = None,
        api_url: str = LINEAR_API_URL,
        max_attempts: int = 5,
        base_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._api_url: str = api_url
        self._max_attempts: int = max_attempts
        self._base_delay: float = base_delay
        self._sleep: Callable[[float], None] = sleep
        self._session: requests.Session = session or requests.Session()
        self._session.headers.update({"Authorization": api_key, "Content-Type": "application/json"})

    def execute(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """Run a query or mutation and return its `data` object.

        Rate-limited requests are retried with exponential backoff.

        Raises:
            ConfigurationError: If the API key is rejected
            RateLimitedError: If the request is still rate limited after all attempts
            LinearApiError: If the API reports any other error
        """
        return call_with_backoff(
            lambda: self._post(query, variables or {}),
            retry_on=(RateLimitedError,),
            max_attempts=self._max_attempts,
            base_delay=self._base_delay,
            sleep=self._sleep,
            context="Linear API request",
        )

    def _post(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        try:
            response = self._session.post(
                self._api_url,
                json={"query": query, "variables": variables},
                timeout=_REQUEST_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            msg = f"Linear API request failed: {e}"
            raise LinearApiError(msg) from e

        if response.status_code == _UNAUTHORIZED_STATUS:
            msg = "Linear authentication failed. Check your LINEAR_API_KEY."
            raise ConfigurationError(msg)
        if response.status_code == _RATE_LIMIT_STATUS:
            msg = "Linear API rate limit exceeded"
            raise RateLimitedError(msg, retry_after=_retry_after(response))

        try:
            body: dict[str, Any] = response.json()
        except ValueError as e:
            msg = f"Linear API returned {response.status_code}: {response.text[:300]}"
            raise LinearApiError(msg) from e

        errors: list[dict[str, Any]] = body.get("errors") or []
        if errors:
            if _is_rate_limited(errors):
                msg = "Linear API rate limit exceeded"
                raise RateLimitedError(msg, retry_after=_retry_after(response))
            messages = " | ".join(error.get("message", str(error)) for error in errors)
            msg = f"Linear GraphQL errors: {messages}"
            raise LinearApiError(msg)
        if not response.ok:
            msg = f"Linear API returned {response.status_code}"
            raise LinearApiError(msg)

        return body.get("data") or {}

    def paginate(self, query: str, variables: dict[str, Any], *path: str) -> Iterator[dict[str, Any]]:
        """Yield all nodes of a connection, following `pageInfo` cursors.

        The query must accept an `$after: String` variable and select
        `nodes` and `pageInfo { hasNextPage endCursor }` on the connection
        found at `path` in the response data.
        """
        cursor: str | None = None
        while True:
            data = self.execute(query, {**variables, "after": cursor})
            connection: dict[str, Any] = data
            for key in path:
                connection = connection.get(key) or {}
            yield from connection.get("nodes") or []

            page_info: dict[str, Any] = connection.get("pageInfo") or {}
            if not page_info.get("hasNextPage") or not page_info.get("endCursor"):
                return
            cursor = page_info["endCursor"]
