"""Subprocess runner with output ceilings and structured results.

Executes external commands (the JavaScript test runner in particular) with
working directory management, separate stdout/stderr capture, and a
per-stream buffer ceiling. A process that exceeds the ceiling is killed and
whatever was captured up to that point is returned.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

DEFAULT_MAX_BUFFER = 10 * 1024 * 1024
"""Default per-stream output ceiling in bytes (10 MiB)."""

_CHUNK_SIZE = 64 * 1024


@dataclass
class SubprocessResult:
    """Result of subprocess execution."""

    returncode: int
    """Exit code of the process."""

    stdout: str
    """Standard output captured from the process."""

    stderr: str
    """Standard error captured from the process."""

    success: bool
    """True if returncode is 0 and the run was not cut short."""

    timed_out: bool = False
    """True if the process was terminated due to timeout."""

    overflowed: bool = False
    """True if a stream exceeded the buffer ceiling and the process was killed."""

    duration_ms: float = 0.0
    """Actual duration of execution in milliseconds."""


@dataclass
class _CappedBuffer:
    """Accumulates chunks from a stream up to *limit* bytes."""

    limit: int
    chunks: list[bytes] = field(default_factory=list)
    size: int = 0
    overflowed: bool = False

    def feed(self, chunk: bytes) -> None:
        remaining = self.limit - self.size
        if len(chunk) > remaining:
            self.chunks.append(chunk[:remaining])
            self.size = self.limit
            self.overflowed = True
            return
        self.chunks.append(chunk)
        self.size += len(chunk)

    def text(self) -> str:
        return b"".join(self.chunks).decode("utf-8", errors="replace")


async def _drain(stream: asyncio.StreamReader, buffer: _CappedBuffer) -> bool:
    """Read *stream* into *buffer*; return ``True`` if the ceiling was hit."""
    while True:
        chunk = await stream.read(_CHUNK_SIZE)
        if not chunk:
            return False
        buffer.feed(chunk)
        if buffer.overflowed:
            return True


def _kill(process: asyncio.subprocess.Process) -> None:
    try:
        process.kill()
    except ProcessLookupError:
        pass  # Process already terminated


async def _communicate_capped(
    process: asyncio.subprocess.Process,
    stdout_buf: _CappedBuffer,
    stderr_buf: _CappedBuffer,
) -> None:
    """Drain both pipes concurrently, killing the process on overflow."""
    assert process.stdout is not None
    assert process.stderr is not None

    pending = {
        asyncio.create_task(_drain(process.stdout, stdout_buf)),
        asyncio.create_task(_drain(process.stderr, stderr_buf)),
    }
    drained = False
    try:
        while pending:
            done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
            if any(task.result() for task in done):
                logger.warning("Subprocess output exceeded %d bytes, killing it", stdout_buf.limit)
                _kill(process)
                # Grandchildren may keep the pipes open after the kill.
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)
                pending = set()
        drained = True
    finally:
        for task in pending:
            task.cancel()
        if not drained:
            # A read error or cancellation must not leave the child running.
            _kill(process)

    await process.wait()


async def run_subprocess(
    command: Sequence[str],
    *,
    cwd: Path | None = None,
    timeout: float | None = None,
    max_buffer: int = DEFAULT_MAX_BUFFER,
    env: dict[str, str] | None = None,
    check: bool = False,
) -> SubprocessResult:
    """Execute a command in a subprocess with an output ceiling.

    Args:
        command: Command and arguments as a sequence (e.g. ``['npm', 'test']``).
        cwd: Working directory for the subprocess. Defaults to current directory.
        timeout: Maximum seconds to wait for completion. ``None`` waits for exit.
        max_buffer: Per-stream ceiling in bytes. Exceeding it kills the process.
        env: Extra environment variables, merged over the current environment.
        check: If True, raise SubprocessError when the run does not succeed.

    Returns:
        SubprocessResult with exit code, output, and metadata.

    Raises:
        SubprocessError: If the command cannot be launched, or if check=True and
            the run did not succeed.
        ValueError: If command is empty, or timeout/max_buffer are invalid.

    Example:
        >>> result = await run_subprocess(
        ...     ['npm', 'test', '--', '--json'],
        ...     cwd=Path('/path/to/project'),
        ... )
        >>> if result.success:
        ...     print(result.stdout)
    """
    if not command:
        raise ValueError("Command cannot be empty")

    if timeout is not None and timeout <= 0:
        raise ValueError(f"Timeout must be positive, got {timeout}")

    if max_buffer <= 0:
        raise ValueError(f"Buffer ceiling must be positive, got {max_buffer}")

    work_dir = cwd.resolve() if cwd else Path.cwd()
    if not work_dir.exists():
        raise ValueError(f"Working directory does not exist: {work_dir}")

    full_env = {**os.environ, **env} if env else None

    logger.debug(
        "Running subprocess: %s (cwd=%s, timeout=%s, max_buffer=%d)",
        " ".join(str(c) for c in command),
        work_dir,
        timeout,
        max_buffer,
    )

    start_time = time.perf_counter()
    timed_out = False
    stdout_buf = _CappedBuffer(max_buffer)
    stderr_buf = _CappedBuffer(max_buffer)

    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=work_dir,
            env=full_env,
        )

        try:
            await asyncio.wait_for(
                _communicate_capped(process, stdout_buf, stderr_buf), timeout=timeout
            )
        except TimeoutError:
            logger.warning("Subprocess timed out after %s seconds", timeout)
            timed_out = True
            _kill(process)
            await process.wait()
            stderr_buf.feed(b"\nProcess timed out and was killed")

        duration_ms = (time.perf_counter() - start_time) * 1000

        overflowed = stdout_buf.overflowed or stderr_buf.overflowed
        returncode = process.returncode or (-1 if timed_out or overflowed else 0)

        result = SubprocessResult(
            returncode=returncode,
            stdout=stdout_buf.text(),
            stderr=stderr_buf.text(),
            success=(returncode == 0 and not timed_out and not overflowed),
            timed_out=timed_out,
            overflowed=overflowed,
            duration_ms=duration_ms,
        )

        logger.debug(
            "Subprocess completed: returncode=%d, duration=%.2fms, success=%s",
            returncode,
            duration_ms,
            result.success,
        )

        if check and not result.success:
            raise SubprocessError(
                f"Command failed with exit code {returncode}: {' '.join(str(c) for c in command)}",
                result=result,
            )

        return result

    except SubprocessError:
        raise

    except FileNotFoundError as exc:
        logger.error("Command not found: %s", command[0])
        raise SubprocessError(
            f"Command not found: {command[0]}",
            result=SubprocessResult(
                returncode=-1,
                stdout="",
                stderr=str(exc),
                success=False,
            ),
        ) from exc

    except Exception as exc:
        logger.exception("Unexpected error running subprocess")
        raise SubprocessError(
            f"Subprocess execution failed: {exc}",
            result=SubprocessResult(
                returncode=-1,
                stdout=stdout_buf.text(),
                stderr=str(exc),
                success=False,
            ),
        ) from exc


class SubprocessError(Exception):
    """Exception raised when subprocess execution fails."""

    def __init__(self, message: str, result: SubprocessResult) -> None:
        """Initialize with error message and result.

        Args:
            message: Error description.
            result: The SubprocessResult from the failed execution.
        """
        super().__init__(message)
        self.result = result
