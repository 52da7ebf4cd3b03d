"""
Cache-aware HTTP fetcher.

Reads through the request cache before touching the network, caches
successful JSON responses, and falls back to soft-expired entries when
the request fails after retries.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from rcache.exceptions import FetchError
from rcache.logging import get_logger
from rcache.request.cache import RequestCache
from rcache.request.keys import merge_params, outbound_params, stringify
from rcache.types import RequestOptions

logger = get_logger(__name__)


def _is_retryable(error: BaseException) -> bool:
    if isinstance(error, httpx.TimeoutException):
        return True
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code >= 500
    return False


class CachedFetcher:
    """GET JSON resources through a RequestCache.

    The cache shields the endpoint from repeat requests while entries are
    live, and stands in for it with stale data when it is failing.
    """

    def __init__(
        self,
        cache: RequestCache,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float = 30.0,
        max_attempts: int = 3,
        retry_wait: float = 1.0,
    ) -> None:
        """Initialize CachedFetcher.

        Args:
            cache: Request cache to read through.
            client: HTTP client. If None, one is created and owned by the fetcher.
            timeout: Timeout for an owned client, in seconds.
            max_attempts: Attempts per request, including the first.
            retry_wait: Exponential backoff multiplier in seconds.
        """
        self.cache = cache
        self._client = client
        self._owns_client = client is None
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.retry_wait = retry_wait

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if the fetcher created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> CachedFetcher:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def _request(self, path: str, params: Mapping[str, Any]) -> Any:
        client = await self._get_client()
        query = {name: stringify(value) for name, value in params.items()}
        async for attempt in AsyncRetrying(
            retry=retry_if_exception(_is_retryable),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.retry_wait, min=0, max=10 * self.retry_wait),
            reraise=True,
        ):
            with attempt:
                response = await client.get(path, params=query)
                response.raise_for_status()
                return response.json()

    async def get_json(
        self,
        url: str,
        params: Mapping[str, Any] | None = None,
        options: RequestOptions | None = None,
    ) -> Any:
        """Fetch a JSON resource, preferring a live cached copy.

        Args:
            url: Resource URL, optionally with a query string.
            params: Request params, including cache directives.
            options: Identity function and logging options.

        Returns:
            The live cached value, the fresh response, or a stale cached value
            if the request failed.

        Raises:
            FetchError: If the request failed and nothing is cached.
        """
        params = params or {}
        options = options or RequestOptions()

        cached, fallback = self.cache.read_with_fallback(url, params, options)
        if cached.hit:
            return cached.value

        path, merged = merge_params(url, params)
        try:
            data = await self._request(path, outbound_params(merged))
        except (httpx.HTTPError, ValueError) as e:
            if fallback.hit:
                logger.warning(
                    "Request failed; serving cached result",
                    url=path,
                    state=fallback.entry_state.value,
                    error=str(e),
                )
                return fallback.value

            status_code = e.response.status_code if isinstance(e, httpx.HTTPStatusError) else None
            raise FetchError(
                f"Failed to fetch {path}",
                context={
                    "url": path,
                    "status_code": status_code,
                    "cache_key": self.cache.key_for(url, params),
                },
            ) from e

        self.cache.write(url, params, data, options)
        return data
