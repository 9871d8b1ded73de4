"""Child-process runner with incremental output capture and a hard timeout."""

import asyncio
import logging
import os
import signal
import time
from typing import Optional, Sequence

from srchd.computer.base import ExecResult
from srchd.lib.error import SrchdError, normalize_error
from srchd.lib.result import Err, Ok, Result

logger = logging.getLogger("srchd.computer")

READ_CHUNK = 4096


async def _drain(stream: asyncio.StreamReader, chunks: list[bytes]):
    while True:
        chunk = await stream.read(READ_CHUNK)
        if not chunk:
            return
        chunks.append(chunk)


def _kill_group(process: asyncio.subprocess.Process):
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    except PermissionError:
        process.kill()


async def run_process(
    argv: Sequence[str],
    timeout: float,
    input: Optional[bytes] = None,
    cwd: Optional[str] = None,
    env: Optional[dict] = None,
) -> Result[ExecResult, SrchdError]:
    """Run `argv` to completion or until `timeout` seconds elapse.

    The child gets its own process group so a timeout kills it together with
    anything it spawned. A non-zero exit is a successful ExecResult; only spawn
    failures and timeouts are errors.
    """
    started = time.monotonic()
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.PIPE if input is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            env=env,
            start_new_session=True,
        )
    except OSError as e:
        return Err(SrchdError(
            "computer_error",
            f"Failed to start `{argv[0]}`",
            normalize_error(e),
        ))

    stdout_chunks: list[bytes] = []
    stderr_chunks: list[bytes] = []
    readers = [
        asyncio.create_task(_drain(process.stdout, stdout_chunks)),
        asyncio.create_task(_drain(process.stderr, stderr_chunks)),
    ]

    async def feed_and_wait():
        if input is not None:
            try:
                process.stdin.write(input)
                await process.stdin.drain()
            except (BrokenPipeError, ConnectionResetError):
                pass
            finally:
                process.stdin.close()
        await asyncio.gather(*readers)
        return await process.wait()

    try:
        exit_code = await asyncio.wait_for(feed_and_wait(), timeout=timeout)
    except asyncio.TimeoutError:
        _kill_group(process)
        await process.wait()
        for reader in readers:
            reader.cancel()
        await asyncio.gather(*readers, return_exceptions=True)
        logger.warning(f"Killed `{argv[0]}` (pid={process.pid}) after {timeout:.1f}s")
        return Err(SrchdError(
            "script_timeout_error",
            f"Command timed out after {timeout:g}s",
        ))

    return Ok(ExecResult(
        exit_code=exit_code,
        stdout=b"".join(stdout_chunks).decode("utf-8", errors="replace"),
        stderr=b"".join(stderr_chunks).decode("utf-8", errors="replace"),
        duration=time.monotonic() - started,
    ))
