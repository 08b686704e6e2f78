# tests/infrastructure/adapters/ai/functionality/test_timeout_wrapper.py

import asyncio

import pytest

from codelens.core.exceptions import UpstreamError, UpstreamTimeoutError
from codelens.infrastructure.adapters.ai.functionality import with_timeout


async def slow(value, delay):
    await asyncio.sleep(delay)
    return value


class TestWithTimeout:

    @pytest.mark.asyncio
    async def test_returns_result(self):
        assert await with_timeout(slow("ok", 0), timeout=1.0) == "ok"

    @pytest.mark.asyncio
    async def test_deadline_exceeded(self):
        with pytest.raises(UpstreamTimeoutError, match="analysis:a.py timed out after 0.01s"):
            await with_timeout(slow("late", 0.5), timeout=0.01, name="analysis:a.py")

    @pytest.mark.asyncio
    async def test_timeout_is_upstream_error(self):
        with pytest.raises(UpstreamError):
            await with_timeout(slow("late", 0.5), timeout=0.01)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("timeout", [None, 0])
    async def test_no_deadline(self, timeout):
        assert await with_timeout(slow("ok", 0.01), timeout=timeout) == "ok"
