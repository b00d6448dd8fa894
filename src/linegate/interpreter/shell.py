"""Interpreter that runs each command as a one-shot shell invocation.

The text inside the ``<...>`` frame is passed to the configured shell
with ``-c``. Standard output and standard error are written back line by
line. Every invocation is bounded by a timeout so a hung command cannot
stall the gateway forever.
"""

from __future__ import annotations

import logging
import os
import subprocess

from linegate.gateway.sink import ResponseSink
from linegate.interpreter.base import CommandInterpreter, InterpreterError, strip_frame

logger = logging.getLogger(__name__)

DEFAULT_SHELL = "/bin/sh"
DEFAULT_TIMEOUT = 5.0


class ShellInterpreter(CommandInterpreter):
    """Runs commands through a shell subprocess, one process per command."""

    def __init__(
        self,
        shell_executable: str = DEFAULT_SHELL,
        timeout: float = DEFAULT_TIMEOUT,
        cwd: str | None = None,
    ) -> None:
        self._shell_executable = shell_executable
        self._timeout = timeout
        self._cwd = cwd

    @property
    def timeout(self) -> float:
        return self._timeout

    def interpret(self, command: str, sink: ResponseSink) -> None:
        body = strip_frame(command)
        if not body:
            return

        env = os.environ.copy()
        env["TERM"] = "dumb"
        try:
            result = subprocess.run(
                [self._shell_executable, "-c", body],
                capture_output=True,
                text=True,
                timeout=self._timeout,
                cwd=self._cwd,
                env=env,
            )
        except subprocess.TimeoutExpired:
            logger.warning("Command timed out after %.1fs: %s", self._timeout, body)
            sink.writeline(f"<! timeout after {self._timeout:g}s>")
            return
        except OSError as e:
            raise InterpreterError(
                f"Failed to run {self._shell_executable}: {e}", interpreter=self.name
            ) from e

        for line in result.stdout.splitlines():
            sink.writeline(line)
        for line in result.stderr.splitlines():
            sink.writeline(line)
        if result.returncode != 0:
            sink.writeline(f"<! exit {result.returncode}>")
        logger.debug("Shell command %r exited with %d", body, result.returncode)
