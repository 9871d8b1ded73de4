"""Execution backend interface: per-agent computers that write files and run commands."""

import hashlib
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass

from srchd.lib.error import SrchdError
from srchd.lib.result import Result

SLUG_LENGTH = 40


def key_slug(key: str) -> str:
    """Name-safe form of `key`, unique per key.

    Only [A-Za-z0-9_-] survive, so the slug can never be `.` or `..`. The digest of the raw
    key keeps keys that sanitize alike (`"a b"`, `"a_b"`) apart.
    """
    slug = re.sub(r"[^A-Za-z0-9_-]", "_", key).strip("_-")[:SLUG_LENGTH] or "key"
    digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:8]
    return f"{slug}-{digest}"


@dataclass
class ExecResult:
    exit_code: int
    stdout: str
    stderr: str
    duration: float = 0.0

    def to_dict(self) -> dict:
        return {
            "exit_code": self.exit_code,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "duration": round(self.duration, 3),
        }


class Computer(ABC):
    """Execution environment bound to one agent key."""

    # Interpreter used to run Python scripts inside this environment.
    python: str = "python3"

    def __init__(self, key: str):
        self.key = key

    @property
    @abstractmethod
    def workdir(self) -> str:
        ...

    @abstractmethod
    async def write_file(self, path: str, data: bytes, mode: int = 0o644) -> Result[None, SrchdError]:
        ...

    @abstractmethod
    async def execute(self, command: str, timeout_ms: int) -> Result[ExecResult, SrchdError]:
        ...

    async def close(self) -> None:
        """Release the environment. Default is a no-op."""


class ComputerBackend(ABC):
    name: str

    @abstractmethod
    async def create(self, key: str) -> Result[Computer, SrchdError]:
        """Create, or attach to an existing, environment for `key`."""
