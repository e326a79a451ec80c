"""Runner for external flashing tool processes.

This module handles:
- Spawning one tool process per invocation
- Streaming stdout to a caller-supplied sink as it arrives
- Capturing stderr for error messages
- Enforcing per-invocation watchdog timeouts

Output is never interpreted here; callers parse it.
"""

from __future__ import annotations

import codecs
import logging
import shlex
import subprocess
import tempfile
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Bytes read from stdout per chunk; small so progress bars stream smoothly
READ_CHUNK_SIZE = 4096

# Characters of stderr kept in ToolResult.error_message
STDERR_TAIL_CHARS = 2000


@dataclass
class ToolResult:
    """Result of a tool invocation.

    Attributes:
        success: Whether the process exited with code 0.
        exit_code: Process exit code (None if it never started).
        command: The command that was executed.
        output: Everything the process wrote to stdout.
        error_message: Error message if the invocation failed.
        timed_out: Whether the watchdog killed the process.
    """

    success: bool
    exit_code: int | None
    command: str
    output: str = ""
    error_message: str | None = None
    timed_out: bool = False


class ExternalToolRunner:
    """Run external tools one at a time.

    Args:
        executable: Program every invocation starts (usually a Python
            interpreter that runs the tool with ``-m<module>``).
    """

    def __init__(self, executable: str) -> None:
        self.executable = executable
        self._process: subprocess.Popen[bytes] | None = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        """Whether a tool process is currently running."""
        with self._lock:
            return self._process is not None and self._process.poll() is None

    def run(
        self,
        args: Sequence[str],
        sink: Callable[[str], None] | None = None,
        *,
        timeout: float | None = None,
    ) -> ToolResult:
        """Execute the tool and wait for it to exit.

        Args:
            args: Arguments appended to the executable.
            sink: Receives decoded stdout chunks as they arrive.
            timeout: Seconds before the process is killed (None = no limit).

        Returns:
            ToolResult with the exit status and captured output.
        """
        cmd = [self.executable, *args]
        cmd_str = shlex.join(cmd)
        logger.debug("Executing tool: %s", cmd_str)

        with tempfile.TemporaryFile() as stderr_file:
            try:
                process = subprocess.Popen(
                    cmd,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=stderr_file,
                )
            except OSError as e:
                error_message = f"Failed to execute {cmd[0]}: {e}"
                logger.error(error_message)
                return ToolResult(
                    success=False,
                    exit_code=None,
                    command=cmd_str,
                    error_message=error_message,
                )

            with self._lock:
                self._process = process

            expired = threading.Event()
            watchdog: threading.Timer | None = None
            if timeout is not None:
                watchdog = threading.Timer(
                    timeout, self._expire, args=(process, expired)
                )
                watchdog.daemon = True
                watchdog.start()

            chunks: list[str] = []
            decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
            try:
                assert process.stdout is not None
                for raw in iter(lambda: process.stdout.read1(READ_CHUNK_SIZE), b""):
                    text = decoder.decode(raw)
                    if not text:
                        continue
                    chunks.append(text)
                    if sink is not None:
                        sink(text)
                tail = decoder.decode(b"", final=True)
                if tail:
                    chunks.append(tail)
                    if sink is not None:
                        sink(tail)
                exit_code = process.wait()
            finally:
                if watchdog is not None:
                    watchdog.cancel()
                if process.poll() is None:
                    process.kill()
                    process.wait()
                process.stdout.close()
                with self._lock:
                    self._process = None

            stderr_file.seek(0)
            stderr_text = stderr_file.read().decode("utf-8", errors="replace").strip()

        output = "".join(chunks)

        if expired.is_set():
            error_message = f"{cmd_str} timed out after {timeout} seconds"
            logger.error(error_message)
            return ToolResult(
                success=False,
                exit_code=exit_code,
                command=cmd_str,
                output=output,
                error_message=error_message,
                timed_out=True,
            )

        if exit_code != 0:
            error_message = (
                stderr_text[-STDERR_TAIL_CHARS:]
                or f"{cmd[0]} exited with code {exit_code}"
            )
            logger.error("Tool failed with exit code %d: %s", exit_code, cmd_str)
            return ToolResult(
                success=False,
                exit_code=exit_code,
                command=cmd_str,
                output=output,
                error_message=error_message,
            )

        return ToolResult(
            success=True, exit_code=exit_code, command=cmd_str, output=output
        )

    def terminate(self) -> bool:
        """Best-effort termination of the running tool process.

        Returns:
            True if a running process was signalled.
        """
        with self._lock:
            process = self._process
        if process is None or process.poll() is not None:
            return False
        logger.warning("Terminating tool process %d", process.pid)
        try:
            process.terminate()
        except OSError as e:
            logger.warning("Failed to terminate process %d: %s", process.pid, e)
            return False
        return True

    @staticmethod
    def _expire(process: subprocess.Popen[bytes], expired: threading.Event) -> None:
        if process.poll() is None:
            expired.set()
            process.kill()


__all__ = ["READ_CHUNK_SIZE", "ExternalToolRunner", "ToolResult"]
