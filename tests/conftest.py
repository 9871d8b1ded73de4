"""Pytest configuration and fixtures."""

import sys
import tempfile
from pathlib import Path
from typing import Optional

import pytest
import pytest_asyncio

# Add the repository root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from srchd.computer.base import Computer, ComputerBackend, ExecResult
from srchd.db import AgentsDB, ArtifactsDB, Database, ExperimentsDB, UsageDB
from srchd.lib.error import SrchdError
from srchd.lib.result import Ok, Result


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def database(temp_dir):
    return Database(str(temp_dir / "srchd.db"))


@pytest.fixture
def experiments_db(database):
    return ExperimentsDB(database)


@pytest.fixture
def agents_db(database):
    return AgentsDB(database)


@pytest.fixture
def artifacts_db(database):
    return ArtifactsDB(database)


@pytest.fixture
def usage_db(database):
    return UsageDB(database)


@pytest_asyncio.fixture
async def experiment(experiments_db):
    result = await experiments_db.create("prime-gaps", problem="Bound the gaps between primes.")
    assert result.is_ok()
    return result.value


@pytest_asyncio.fixture
async def agent(agents_db, experiment):
    result = await agents_db.create(experiment, "euler", provider="anthropic", model="test-model")
    assert result.is_ok()
    return result.value


class FakeComputer(Computer):
    """In-memory computer returning canned execution results."""

    def __init__(self, key: str = "euler", exec_result: Optional[Result] = None, write_result: Optional[Result] = None):
        super().__init__(key)
        self.files: dict[str, tuple[bytes, int]] = {}
        self.commands: list[tuple[str, int]] = []
        self.exec_result = exec_result or Ok(ExecResult(exit_code=0, stdout="", stderr=""))
        self.write_result = write_result
        self.closed = False

    @property
    def workdir(self) -> str:
        return "/home/agent"

    async def write_file(self, path: str, data: bytes, mode: int = 0o644) -> Result[None, SrchdError]:
        if self.write_result is not None:
            return self.write_result
        self.files[path] = (data, mode)
        return Ok(None)

    async def execute(self, command: str, timeout_ms: int) -> Result[ExecResult, SrchdError]:
        self.commands.append((command, timeout_ms))
        return self.exec_result

    async def close(self) -> None:
        self.closed = True


class FakeBackend(ComputerBackend):
    name = "fake"

    def __init__(self, computer: Optional[FakeComputer] = None, create_result: Optional[Result] = None):
        self.computer = computer
        self.create_result = create_result
        self.created: list[str] = []

    async def create(self, key: str) -> Result[Computer, SrchdError]:
        self.created.append(key)
        if self.create_result is not None:
            return self.create_result
        return Ok(self.computer or FakeComputer(key))


@pytest.fixture
def fake_computer():
    return FakeComputer()


@pytest.fixture
def fake_backend(fake_computer):
    return FakeBackend(fake_computer)
