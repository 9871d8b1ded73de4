"""Docker sandbox backend: one long-lived container per agent, driven by the docker CLI."""

import logging

from srchd.computer.base import Computer, ComputerBackend, ExecResult, key_slug
from srchd.computer.process import run_process
from srchd.lib.error import SrchdError
from srchd.lib.result import Err, Ok, Result

logger = logging.getLogger("srchd.computer")

DOCKER_TIMEOUT = 120.0
# Host-side slack on top of the in-container `timeout`, which is what normally fires.
KILL_GRACE = 5.0
# Exit status of `timeout -s KILL` when it had to kill the command.
KILLED_EXIT_CODE = 137


def container_name(prefix: str, key: str) -> str:
    return f"{prefix}-{key_slug(key)}"


class DockerComputer(Computer):
    def __init__(self, key: str, container: str, workdir: str, docker: str = "docker"):
        super().__init__(key)
        self.container = container
        self._workdir = workdir
        self.docker = docker

    @property
    def workdir(self) -> str:
        return self._workdir

    def _resolve(self, path: str) -> str:
        if path.startswith("/"):
            return path
        return f"{self._workdir.rstrip('/')}/{path}"

    async def write_file(self, path: str, data: bytes, mode: int = 0o644) -> Result[None, SrchdError]:
        target = self._resolve(path)
        script = 'mkdir -p "$(dirname "$1")" && cat > "$1.tmp" && chmod "$2" "$1.tmp" && mv -f "$1.tmp" "$1"'
        result = await run_process(
            [self.docker, "exec", "-i", self.container, "sh", "-c", script, "sh", target, format(mode, "o")],
            timeout=DOCKER_TIMEOUT,
            input=data,
        )
        if result.is_err():
            return result

        if result.value.exit_code != 0:
            return Err(SrchdError(
                "computer_error",
                f"Failed to write {target} in {self.container}",
                Exception(result.value.stderr.strip() or f"exit code {result.value.exit_code}"),
            ))
        return Ok(None)

    async def execute(self, command: str, timeout_ms: int) -> Result[ExecResult, SrchdError]:
        seconds = timeout_ms / 1000
        argv = [
            self.docker, "exec", "-w", self._workdir, self.container,
            "timeout", "-s", "KILL", f"{seconds:g}s",
            "sh", "-c", command,
        ]
        result = await run_process(argv, timeout=seconds + KILL_GRACE)
        if result.is_err():
            return result

        exec_result = result.value
        if exec_result.exit_code == KILLED_EXIT_CODE and exec_result.duration >= seconds:
            logger.warning(f"Command in {self.container} killed after {seconds:g}s")
            return Err(SrchdError(
                "script_timeout_error",
                f"Command timed out after {seconds:g}s",
            ))
        return Ok(exec_result)

    async def close(self) -> None:
        result = await run_process([self.docker, "rm", "-f", self.container], timeout=DOCKER_TIMEOUT)
        if result.is_err() or result.value.exit_code != 0:
            logger.warning(f"Failed to remove container {self.container}")
        else:
            logger.info(f"Removed container {self.container}")


class DockerBackend(ComputerBackend):
    name = "docker"

    def __init__(
        self,
        image: str = "python:3.11-slim",
        workdir: str = "/home/agent",
        prefix: str = "srchd",
        docker: str = "docker",
    ):
        self.image = image
        self.workdir = workdir
        self.prefix = prefix
        self.docker = docker

    async def _docker(self, *args: str) -> Result[ExecResult, SrchdError]:
        return await run_process([self.docker, *args], timeout=DOCKER_TIMEOUT)

    async def create(self, key: str) -> Result[Computer, SrchdError]:
        name = container_name(self.prefix, key)

        inspect = await self._docker("inspect", "--format", "{{.State.Running}}", name)
        if inspect.is_err():
            return inspect

        if inspect.value.exit_code == 0:
            if inspect.value.stdout.strip() != "true":
                started = await self._docker("start", name)
                failure = self._failure(started, f"Failed to start container {name}")
                if failure:
                    return failure
            logger.info(f"Reusing container {name} for {key}")
        else:
            run = await self._docker(
                "run", "-d",
                "--name", name,
                "--label", f"srchd.key={key}",
                "--label", f"srchd.prefix={self.prefix}",
                self.image,
                "sleep", "infinity",
            )
            failure = self._failure(run, f"Failed to create container {name} from {self.image}")
            if failure:
                return failure
            logger.info(f"Created container {name} for {key}")

        mkdir = await self._docker("exec", name, "mkdir", "-p", self.workdir)
        failure = self._failure(mkdir, f"Failed to prepare {self.workdir} in {name}")
        if failure:
            return failure

        return Ok(DockerComputer(key, name, self.workdir, docker=self.docker))

    def _failure(self, result: Result[ExecResult, SrchdError], message: str):
        if result.is_err():
            return Err(SrchdError("computer_error", message, result.error))
        if result.value.exit_code != 0:
            return Err(SrchdError(
                "computer_error",
                message,
                Exception(result.value.stderr.strip() or f"exit code {result.value.exit_code}"),
            ))
        return None
