"""
Shell collaborator: runs one command per shell action with cooperative cancellation.

The command string is handed to ``/bin/sh`` as-is, so chaining with ``&&``
stays the producer's concern.
"""
import asyncio
import logging
import os
import signal
from dataclasses import dataclass
from typing import Optional, Protocol

from . import policy
from .context import ExecutionContext

logger = logging.getLogger(__name__)

MAX_OUTPUT_CHARS = 20000


@dataclass
class ShellResult:
    exit_code: Optional[int]
    stdout: str = ""
    stderr: str = ""
    cancelled: bool = False
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return self.exit_code == 0 and not self.cancelled and not self.timed_out


class ShellRunner(Protocol):
    async def exec(self, command: str, token=None) -> ShellResult: ...


def _decode(data: Optional[bytes]) -> str:
    text = (data or b"").decode("utf-8", errors="replace")
    return text[-MAX_OUTPUT_CHARS:]


class SubprocessShell:
    """Runs commands through asyncio subprocesses inside the working directory."""

    def __init__(self, context: Optional[ExecutionContext] = None, kill_grace: float = 5.0, enforce_policy: bool = True):
        self.context = context or ExecutionContext()
        self.kill_grace = kill_grace
        self.enforce_policy = enforce_policy

    async def exec(self, command: str, token=None) -> ShellResult:
        if self.enforce_policy:
            policy.enforce(command)

        env = {**os.environ, **self.context.env}
        proc = await asyncio.create_subprocess_shell(
            command,
            cwd=self.context.work_dir,
            env=env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=(os.name == "posix"),
        )
        logger.info("shell: started pid=%s: %s", proc.pid, command)
        comm = asyncio.ensure_future(proc.communicate())
        waiters = {comm}
        cancel_wait = None
        if token is not None:
            cancel_wait = asyncio.ensure_future(token.wait())
            waiters.add(cancel_wait)

        try:
            done, _ = await asyncio.wait(waiters, timeout=self.context.timeout, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            await self._terminate(proc, comm)
            raise
        finally:
            if cancel_wait is not None and not cancel_wait.done():
                cancel_wait.cancel()

        if comm in done:
            stdout, stderr = comm.result()
            return ShellResult(proc.returncode, _decode(stdout), _decode(stderr))

        cancelled = cancel_wait is not None and cancel_wait in done
        logger.warning("shell: %s pid=%s", "cancelling" if cancelled else "timed out", proc.pid)
        stdout, stderr = await self._terminate(proc, comm)
        return ShellResult(proc.returncode, _decode(stdout), _decode(stderr), cancelled=cancelled, timed_out=not cancelled)

    def _signal(self, proc, sig) -> None:
        try:
            if os.name == "posix":
                os.killpg(proc.pid, sig)
            elif sig == signal.SIGTERM:
                proc.terminate()
            else:
                proc.kill()
        except ProcessLookupError:
            pass

    async def _terminate(self, proc, comm):
        if proc.returncode is None:
            self._signal(proc, signal.SIGTERM)
            done, _ = await asyncio.wait({comm}, timeout=self.kill_grace)
            if not done:
                self._signal(proc, getattr(signal, "SIGKILL", signal.SIGTERM))
        return await comm
