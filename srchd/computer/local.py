"""Local subprocess backend: one working directory per agent on the host."""

import logging
import os
import shlex
import tempfile
from pathlib import Path

from srchd.computer.base import Computer, ComputerBackend, ExecResult, key_slug
from srchd.computer.process import run_process
from srchd.lib.error import SrchdError, normalize_error
from srchd.lib.result import Err, Ok, Result

logger = logging.getLogger("srchd.computer")


class LocalComputer(Computer):
    def __init__(self, key: str, root: Path, python: str = "python3"):
        super().__init__(key)
        self.root = root
        self.python = python

    @property
    def workdir(self) -> str:
        return str(self.root)

    def _resolve(self, path: str) -> Path:
        target = Path(path)
        if not target.is_absolute():
            target = self.root / target
        return target

    async def write_file(self, path: str, data: bytes, mode: int = 0o644) -> Result[None, SrchdError]:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            # Write beside the target then rename so readers never see a partial file.
            fd, tmp_path = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                os.chmod(tmp_path, mode)
                os.replace(tmp_path, target)
            except BaseException:
                Path(tmp_path).unlink(missing_ok=True)
                raise
        except OSError as e:
            return Err(SrchdError(
                "computer_error",
                f"Failed to write {target}",
                normalize_error(e),
            ))
        return Ok(None)

    async def execute(self, command: str, timeout_ms: int) -> Result[ExecResult, SrchdError]:
        argv = shlex.split(command)
        if not argv:
            return Err(SrchdError("computer_error", "Empty command"))

        return await run_process(argv, timeout=timeout_ms / 1000, cwd=str(self.root))


class LocalBackend(ComputerBackend):
    name = "local"

    def __init__(self, root: str, python: str = "python3"):
        self.root = Path(root)
        self.python = python

    async def create(self, key: str) -> Result[Computer, SrchdError]:
        workdir = self.root / key_slug(key)
        try:
            workdir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return Err(SrchdError(
                "computer_error",
                f"Failed to create workspace for {key}",
                normalize_error(e),
            ))

        logger.info(f"Local workspace for {key} at {workdir}")
        return Ok(LocalComputer(key, workdir, python=self.python))
