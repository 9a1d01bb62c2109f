from __future__ import annotations

import asyncio

import httpx

from dynasync.adapters.http_resilience import (
    RateLimit,
    ResilienceConfig,
    ResilientClient,
    RetryPolicy,
    build_retry,
)


def test_build_retry_copies_policy() -> None:
    policy = RetryPolicy(total=2, backoff_factor=0.1, status_forcelist=frozenset({503}))

    retry = build_retry(policy)

    assert retry.total == 2
    assert retry.backoff_factor == 0.1
    assert 503 in retry.status_forcelist
    assert "POST" in retry.allowed_methods


def test_resilient_client_sends_requests_through_limiter() -> None:
    seen: list[httpx.Request] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True})

    config = ResilienceConfig(
        name="test",
        ratelimit=RateLimit(max_calls=100, per_seconds=1.0),
        default_headers={"Accept": "application/json"},
    )

    async def run() -> list[int]:
        async with ResilientClient(config) as client:
            client._client = httpx.AsyncClient(  # noqa: SLF001  # type: ignore[reportPrivateUsage]
                transport=httpx.MockTransport(handler),
                headers={"Accept": "application/json"},
            )
            first = await client.get("https://example.test/a")
            second = await client.post("https://example.test/b", data={"x": "1"})
            return [first.status_code, second.status_code]

    assert asyncio.run(run()) == [200, 200]
    assert [request.method for request in seen] == ["GET", "POST"]
    assert seen[0].headers["Accept"] == "application/json"


def test_default_policy_retries_transport_errors() -> None:
    retry = build_retry(RetryPolicy())

    assert set(retry.retry_on_exceptions) == {
        httpx.TimeoutException,
        httpx.NetworkError,
        httpx.RemoteProtocolError,
    }


def test_client_registers_only_its_response_logger() -> None:
    client = ResilientClient(ResilienceConfig(name="test"))
    try:
        hooks = client._client.event_hooks  # noqa: SLF001  # type: ignore[reportPrivateUsage]
        assert hooks["response"] == [client._log_response]  # noqa: SLF001  # type: ignore[reportPrivateUsage]
        assert hooks["request"] == []
    finally:
        asyncio.run(client.aclose())
