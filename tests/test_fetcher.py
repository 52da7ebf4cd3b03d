"""
Tests for the cache-aware HTTP fetcher.
"""

from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest

from conftest import FakeClock
from rcache.cache.lru import LRUStore
from rcache.exceptions import FetchError
from rcache.request.cache import RequestCache
from rcache.request.fetcher import CachedFetcher

URL = "https://api.example.com/items"
PAYLOAD = {"items": [1, 2, 3]}


class Recorder:
    """MockTransport handler that replays scripted responses."""

    def __init__(self, *responses: Callable[[httpx.Request], httpx.Response]) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        step = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        return step(request)


def ok(payload: object = PAYLOAD) -> Callable[[httpx.Request], httpx.Response]:
    return lambda request: httpx.Response(200, json=payload)


def status(code: int) -> Callable[[httpx.Request], httpx.Response]:
    return lambda request: httpx.Response(code, json={"error": code})


def timeout() -> Callable[[httpx.Request], httpx.Response]:
    def _raise(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    return _raise


def make_fetcher(cache: RequestCache, recorder: Recorder) -> CachedFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
    return CachedFetcher(cache, client=client, retry_wait=0)


class TestReadThrough:
    """Test that live entries shield the endpoint."""

    @pytest.mark.asyncio
    async def test_second_call_is_served_from_cache(self, request_cache: RequestCache) -> None:
        recorder = Recorder(ok())
        fetcher = make_fetcher(request_cache, recorder)

        assert await fetcher.get_json(URL, {"page": 1}) == PAYLOAD
        assert await fetcher.get_json(URL, {"page": 1}) == PAYLOAD
        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_directives_are_not_sent(self, request_cache: RequestCache) -> None:
        recorder = Recorder(ok())
        fetcher = make_fetcher(request_cache, recorder)

        await fetcher.get_json(
            f"{URL}?dtMaxAge=500",
            {"page": 1, "callback": "cb", "__showLog": True},
        )

        sent = recorder.requests[0].url
        assert sent.path == "/items"
        assert dict(sent.params) == {"page": "1", "callback": "cb"}

    @pytest.mark.asyncio
    async def test_expired_entry_is_refreshed(
        self, request_cache: RequestCache, clock: FakeClock
    ) -> None:
        recorder = Recorder(ok({"v": 1}), ok({"v": 2}))
        fetcher = make_fetcher(request_cache, recorder)

        await fetcher.get_json(URL, {"dtMaxAge": 1000})
        clock.advance(1000)

        assert await fetcher.get_json(URL, {"dtMaxAge": 1000}) == {"v": 2}
        assert request_cache.get_cache(URL) == {"v": 2}


class TestFailures:
    """Test retries and stale fallback."""

    @pytest.mark.asyncio
    async def test_server_errors_fall_back_to_stale_entry(
        self, request_cache: RequestCache
    ) -> None:
        recorder = Recorder(ok(), status(503))
        fetcher = make_fetcher(request_cache, recorder)

        await fetcher.get_json(URL, {"dtMaxAge": -1})
        assert await fetcher.get_json(URL, {"dtMaxAge": -1}) == PAYLOAD
        assert len(recorder.requests) == 1 + 3

    @pytest.mark.asyncio
    async def test_fallback_counts_as_one_use(
        self, request_cache: RequestCache, store: LRUStore
    ) -> None:
        """Test that a failed refresh touches the ledger once."""
        recorder = Recorder(ok(), status(503))
        fetcher = make_fetcher(request_cache, recorder)

        await fetcher.get_json(URL, {"dtMaxAge": -1})
        assert store.ledger.get(f"{URL}-").frequency == 1

        await fetcher.get_json(URL, {"dtMaxAge": -1})
        assert store.ledger.get(f"{URL}-").frequency == 2

    @pytest.mark.asyncio
    async def test_timeouts_are_retried(self, request_cache: RequestCache) -> None:
        recorder = Recorder(timeout(), ok())
        fetcher = make_fetcher(request_cache, recorder)

        assert await fetcher.get_json(URL) == PAYLOAD
        assert len(recorder.requests) == 2

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self, request_cache: RequestCache) -> None:
        recorder = Recorder(status(404))
        fetcher = make_fetcher(request_cache, recorder)

        with pytest.raises(FetchError) as exc_info:
            await fetcher.get_json(URL, {"page": 9})

        assert exc_info.value.context["status_code"] == 404
        assert exc_info.value.context["cache_key"] == f"{URL}-?page=9"
        assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)
        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_invalid_json_without_cache_raises(self, request_cache: RequestCache) -> None:
        recorder = Recorder(lambda request: httpx.Response(200, text="<html>"))
        fetcher = make_fetcher(request_cache, recorder)

        with pytest.raises(FetchError):
            await fetcher.get_json(URL)

    @pytest.mark.asyncio
    async def test_disabled_cache_still_fetches(self, request_cache: RequestCache) -> None:
        recorder = Recorder(ok())
        fetcher = make_fetcher(request_cache, recorder)

        assert await fetcher.get_json(URL, {"__disableCache": True}) == PAYLOAD
        assert request_cache.get_cache(URL) is None


class TestLifecycle:
    """Test client ownership."""

    @pytest.mark.asyncio
    async def test_owned_client_is_closed(self, request_cache: RequestCache) -> None:
        async with CachedFetcher(request_cache) as fetcher:
            client = await fetcher._get_client()
        assert client.is_closed

    @pytest.mark.asyncio
    async def test_borrowed_client_is_left_open(self, request_cache: RequestCache) -> None:
        client = httpx.AsyncClient(transport=httpx.MockTransport(Recorder(ok())))
        fetcher = CachedFetcher(request_cache, client=client)
        await fetcher.close()

        assert not client.is_closed
        await client.aclose()
