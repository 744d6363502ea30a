# tests/unit/remote/test_retry.py — v1
"""Tests for remote/retry.py — status classification and backoff loop."""

from __future__ import annotations

import httpx
import pytest

from taskcache.remote.retry import RetryConfig, _compute_delay, should_retry, with_retry


class TestShouldRetry:
    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
    def test_retryable(self, status):
        assert should_retry(httpx.Response(status)) is True

    @pytest.mark.parametrize("status", [200, 204, 400, 401, 403, 404, 501])
    def test_not_retryable(self, status):
        assert should_retry(httpx.Response(status)) is False


class TestComputeDelay:
    def test_exponential_without_jitter(self):
        config = RetryConfig(base_delay_s=1.0, backoff_factor=2.0, jitter=False)
        assert [_compute_delay(config, i) for i in range(3)] == [1.0, 2.0, 4.0]

    def test_jitter_bounds(self):
        config = RetryConfig(base_delay_s=1.0, jitter=True)
        for _ in range(20):
            assert 0.5 <= _compute_delay(config, 0) <= 1.5


class TestWithRetry:
    @pytest.mark.asyncio
    async def test_returns_first_success(self):
        calls = []

        async def send():
            calls.append(1)
            return httpx.Response(200)

        response = await with_retry(send, config=RetryConfig(base_delay_s=0.0))
        assert response.status_code == 200
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_returns_last_response_when_exhausted(self):
        statuses = iter([429, 500, 503, 200])

        async def send():
            return httpx.Response(next(statuses))

        response = await with_retry(send, config=RetryConfig(max_retries=2, base_delay_s=0.0))
        assert response.status_code == 503

    @pytest.mark.asyncio
    async def test_transport_error_not_retried(self):
        calls = []

        async def send():
            calls.append(1)
            raise httpx.ReadTimeout("slow")

        with pytest.raises(httpx.ReadTimeout):
            await with_retry(send, config=RetryConfig(base_delay_s=0.0))
        assert len(calls) == 1
