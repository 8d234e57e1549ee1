"""Shell command execution for the provider ``bash`` tool."""

import asyncio
import logging

from intentest.error_handling import ToolError

logger = logging.getLogger(__name__)


class BashTool:
    """Runs one shell command per call and returns its text output."""

    def __init__(self, timeout: float = 120.0) -> None:
        self.timeout = timeout

    async def execute(self, command: str) -> str:
        """
        Run ``command`` through the system shell.

        Returns trimmed stdout on success. On a non-zero exit returns stderr,
        or a message with the exit code when stderr is empty.
        """
        logger.debug("Running shell command", extra={"command": command})
        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise ToolError(f"Error spawning process: {exc}", tool="bash", cause=exc) from exc

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            return f"Command timed out after {self.timeout:g}s"

        if process.returncode == 0:
            return stdout.decode(errors="replace").strip()

        error_output = stderr.decode(errors="replace").strip()
        return error_output or f"Process exited with code {process.returncode}"
