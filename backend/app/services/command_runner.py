# backend/app/services/command_runner.py
import asyncio
import logging
import os
import signal
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence

logger = logging.getLogger(__name__)

# Upper bound on collecting output after a kill
DRAIN_TIMEOUT_SECONDS = 1.0


@dataclass
class CommandResult:
    """Outcome of a finished (or killed) external command."""
    code: Optional[int]
    stdout: str
    stderr: str
    killed: bool = False


# Signature shared by the real runner and any replacement injected into the routes
CommandRunner = Callable[[Sequence[str], int], Awaitable[CommandResult]]


def _decode(data: Optional[bytes]) -> str:
    return (data or b"").decode("utf-8", errors="replace")


def _kill_process_tree(process: asyncio.subprocess.Process) -> None:
    """Kills the command and everything it spawned (its own session on POSIX)."""
    try:
        if os.name == "posix":
            os.killpg(process.pid, signal.SIGKILL)
        else:
            process.kill()
    except ProcessLookupError:
        pass


async def run_command_with_timeout(argv: Sequence[str], timeout_ms: int) -> CommandResult:
    """
    Runs an external command and captures its output under a wall-clock timeout.

    If the command does not finish within `timeout_ms`, it and any processes it
    started (shell wrappers, node launchers) are killed and the result comes back
    with `code=None` and `killed=True`, carrying whatever output could be
    collected within DRAIN_TIMEOUT_SECONDS. Spawn failures (e.g.
    FileNotFoundError) propagate.
    """
    if not argv:
        raise ValueError("argv must not be empty")

    process = await asyncio.create_subprocess_exec(
        *argv,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        # Own process group, so a timeout can kill grandchildren holding the pipes
        start_new_session=(os.name == "posix"),
    )
    communicate = asyncio.ensure_future(process.communicate())
    try:
        stdout, stderr = await asyncio.wait_for(asyncio.shield(communicate), timeout=timeout_ms / 1000)
    except asyncio.TimeoutError:
        logger.warning(f"Command {argv[0]} exceeded {timeout_ms}ms, killing pid {process.pid} and its group")
        _kill_process_tree(process)
        try:
            stdout, stderr = await asyncio.wait_for(communicate, timeout=DRAIN_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            logger.warning(f"Output of killed command {argv[0]} could not be drained, discarding it")
            stdout, stderr = b"", b""
        return CommandResult(code=None, stdout=_decode(stdout), stderr=_decode(stderr), killed=True)

    return CommandResult(code=process.returncode, stdout=_decode(stdout), stderr=_decode(stderr))
