"""Shell command dispatch via asyncio subprocesses."""
import asyncio
import logging
from typing import Optional

from cmdvault.domain.commands.models import Command, ExecutionResult
from cmdvault.domain.interfaces import CommandDispatcher

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0


class ShellDispatcher(CommandDispatcher):
    def __init__(self, timeout: Optional[float] = DEFAULT_TIMEOUT, shell: str = "/bin/sh",
                 cwd: Optional[str] = None):
        self.timeout = timeout
        self.shell = shell
        self.cwd = cwd

    async def run(self, command: Command) -> ExecutionResult:
        proc = await asyncio.create_subprocess_shell(
            command.command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            executable=self.shell,
            cwd=self.cwd,
        )
        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            await self._kill(proc)
            return ExecutionResult(error=f"timed out after {self.timeout}s")
        except asyncio.CancelledError:
            # Caller gave up (e.g. chain deadline); do not leave the process behind
            await self._kill(proc)
            raise

        stdout = stdout_bytes.decode("utf-8", errors="replace").strip()
        stderr = stderr_bytes.decode("utf-8", errors="replace").strip()
        if proc.returncode != 0:
            logger.info(f"Command {command.id} exited with {proc.returncode}")
            return ExecutionResult(text=stdout, error=stderr or f"exit status {proc.returncode}")
        return ExecutionResult(text=stdout or stderr)

    async def _kill(self, proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is not None:
            return
        proc.kill()
        await proc.wait()
