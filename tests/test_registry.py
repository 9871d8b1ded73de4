"""Tests for the per-experiment computer registry."""

import asyncio

import pytest

from srchd.computer.base import ComputerBackend
from srchd.computer.registry import ComputerRegistry
from srchd.lib.error import SrchdError
from srchd.lib.result import Err, Ok


class SlowBackend(ComputerBackend):
    name = "slow"

    def __init__(self, make_computer):
        self.make_computer = make_computer
        self.calls = 0

    async def create(self, key):
        self.calls += 1
        await asyncio.sleep(0.01)
        return Ok(self.make_computer(key))


class TestComputerRegistry:

    @pytest.mark.asyncio
    async def test_concurrent_ensure_creates_once(self, fake_computer):
        """Concurrent callers for one key should all get the same computer."""
        backend = SlowBackend(lambda key: fake_computer)
        registry = ComputerRegistry(backend)

        results = await asyncio.gather(*(registry.ensure("euler") for _ in range(10)))

        assert backend.calls == 1
        assert all(r.is_ok() and r.value is fake_computer for r in results)

    @pytest.mark.asyncio
    async def test_each_key_is_created_once(self, fake_backend):
        registry = ComputerRegistry(fake_backend)

        first = await registry.ensure("euler")
        second = await registry.ensure("gauss")
        again = await registry.ensure("euler")

        assert fake_backend.created == ["euler", "gauss"]
        assert again.value is first.value
        assert len(registry) == 2

    @pytest.mark.asyncio
    async def test_failed_creation_is_not_cached(self, fake_backend):
        fake_backend.create_result = Err(SrchdError("computer_error", "no docker"))
        registry = ComputerRegistry(fake_backend)

        result = await registry.ensure("euler")
        assert result.is_err()
        assert registry.get("euler") is None

        fake_backend.create_result = None
        assert (await registry.ensure("euler")).is_ok()
        assert fake_backend.created == ["euler", "euler"]

    @pytest.mark.asyncio
    async def test_teardown_closes_everything(self, fake_backend, fake_computer):
        registry = ComputerRegistry(fake_backend)
        await registry.ensure("euler")

        await registry.teardown()

        assert fake_computer.closed
        assert len(registry) == 0
