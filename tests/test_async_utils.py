"""Tests for the bounded concurrency executor."""

import asyncio
import random

import pytest

from srchd.lib.async_utils import concurrent_executor


class TestConcurrentExecutor:
    """Ordering, parallelism cap and fail-fast behaviour."""

    @pytest.mark.asyncio
    async def test_preserves_input_order(self):
        """Output order should match a sequential map whatever the latencies."""
        items = [1, 2, 3, 4, 5]
        rng = random.Random(7)

        async def slow_square(x):
            await asyncio.sleep(rng.uniform(0, 0.02))
            return x * x

        for _ in range(5):
            results = await concurrent_executor(items, slow_square, concurrency=2)
            assert results == [x * x for x in items]

    @pytest.mark.asyncio
    async def test_reverse_latency_still_ordered(self):
        """Later items finishing first should not reorder the output."""
        async def fn(x):
            await asyncio.sleep((5 - x) * 0.005)
            return f"item-{x}"

        results = await concurrent_executor([0, 1, 2, 3, 4], fn, concurrency=5)
        assert results == ["item-0", "item-1", "item-2", "item-3", "item-4"]

    @pytest.mark.asyncio
    async def test_never_exceeds_concurrency(self):
        in_flight = 0
        peak = 0

        async def fn(x):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.005)
            in_flight -= 1
            return x

        await concurrent_executor(list(range(12)), fn, concurrency=3)
        assert peak == 3

    @pytest.mark.asyncio
    async def test_empty_input(self):
        async def fn(x):
            return x

        assert await concurrent_executor([], fn, concurrency=4) == []

    @pytest.mark.asyncio
    async def test_first_failure_is_raised(self):
        """A failing transform should surface and stop new work from starting."""
        started = []

        async def fn(x):
            started.append(x)
            await asyncio.sleep(0.001)
            if x == 1:
                raise RuntimeError("bad item")
            return x

        with pytest.raises(RuntimeError, match="bad item"):
            await concurrent_executor(list(range(10)), fn, concurrency=2)

        assert len(started) < 10

    @pytest.mark.asyncio
    async def test_invalid_concurrency(self):
        async def fn(x):
            return x

        with pytest.raises(ValueError):
            await concurrent_executor([1], fn, concurrency=0)
