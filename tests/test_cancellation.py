"""Tests for the cooperative cancellation token."""

import asyncio

import pytest

from lqa_batch.execution.cancellation import DEFAULT_CANCEL_REASON, CancellationToken


class TestCancellationToken:
    def test_initially_clear(self):
        token = CancellationToken()
        assert not token.is_cancelled
        assert token.reason is None

    def test_set_once(self):
        """The first reason sticks; later calls report False."""
        token = CancellationToken()
        assert token.cancel("user pressed stop") is True
        assert token.cancel("second request") is False
        assert token.is_cancelled
        assert token.reason == "user pressed stop"

    def test_default_reason(self):
        token = CancellationToken()
        token.cancel()
        assert token.reason == DEFAULT_CANCEL_REASON

    @pytest.mark.asyncio
    async def test_wait_times_out_when_not_cancelled(self):
        token = CancellationToken()
        assert await token.wait(0.01) is False

    @pytest.mark.asyncio
    async def test_wait_returns_when_cancelled(self):
        token = CancellationToken()

        async def cancel_soon():
            await asyncio.sleep(0.01)
            token.cancel()

        asyncio.get_running_loop().create_task(cancel_soon())
        assert await asyncio.wait_for(token.wait(10), timeout=1.0) is True

    @pytest.mark.asyncio
    async def test_wait_zero_does_not_block(self):
        token = CancellationToken()
        assert await token.wait(0) is False
        token.cancel()
        assert await token.wait(0) is True
