"""Per-experiment registry of agent computers."""

import asyncio
import logging
from typing import Optional

from srchd.computer.base import Computer, ComputerBackend
from srchd.lib.error import SrchdError
from srchd.lib.result import Ok, Result

logger = logging.getLogger("srchd.computer")


class ComputerRegistry:
    """Hands out one computer per agent key, creating it at most once.

    Created when an experiment starts and torn down when it ends. Concurrent
    `ensure` calls for the same key wait on a per-key lock, so they all observe
    the same computer. Calls against one computer are not serialized here.
    """

    def __init__(self, backend: ComputerBackend):
        self.backend = backend
        self._computers: dict[str, Computer] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def get(self, key: str) -> Optional[Computer]:
        return self._computers.get(key)

    def __len__(self) -> int:
        return len(self._computers)

    async def ensure(self, key: str) -> Result[Computer, SrchdError]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            computer = self._computers.get(key)
            if computer is not None:
                return Ok(computer)

            result = await self.backend.create(key)
            if result.is_ok():
                self._computers[key] = result.value
            return result

    async def release(self, key: str) -> None:
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            computer = self._computers.pop(key, None)
            if computer is not None:
                await computer.close()

    async def teardown(self) -> None:
        keys = list(self._computers)
        for key in keys:
            await self.release(key)
        self._locks.clear()
        if keys:
            logger.info(f"Tore down {len(keys)} {self.backend.name} computer(s)")
