"""Shell and subprocess utilities.

Provides async wrappers around the publish and probe commands, which run
through the configured shell in the package directory, plus output
formatting helpers.

Every spawned process belongs to the coroutine that spawned it. If that
coroutine is cancelled (for example when the run deadline expires) the
process is terminated before the cancellation propagates.
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

# Graceful shutdown timeout before SIGKILL
GRACEFUL_SHUTDOWN_TIMEOUT = 5.0

# Size of each read from a probe's stdout
CHUNK_SIZE = 4096


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate major phases of the release pipeline in terminal output.
    """
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")


def warn(msg: str) -> None:
    """Print a non-fatal problem to stderr."""
    print(f"  Warning: {msg}", file=sys.stderr)


async def terminate(proc: asyncio.subprocess.Process) -> None:
    """Stop a process: SIGTERM, then SIGKILL if it outlives the grace period."""
    if proc.returncode is not None:
        return
    try:
        proc.terminate()
        try:
            await asyncio.wait_for(proc.wait(), timeout=GRACEFUL_SHUTDOWN_TIMEOUT)
        except TimeoutError:
            proc.kill()
            await proc.wait()
    except ProcessLookupError:
        pass


async def run_command(command: str, *, cwd: Path, shell: str | None = None) -> int:
    """Run a shell command with inherited stdin, stdout and stderr.

    Output streams straight to the terminal so publish tool output is
    visible live.

    Returns:
        The process exit status.
    """
    proc = await asyncio.create_subprocess_shell(command, cwd=cwd, executable=shell)
    try:
        return await proc.wait()
    except asyncio.CancelledError:
        await terminate(proc)
        raise


async def read_first_line(
    command: str, *, cwd: Path, shell: str | None = None
) -> tuple[str | None, int]:
    """Run a shell command and return the first non-empty line it prints.

    Stdout is read incrementally. Reading stops at the first complete
    non-empty line, or when the stream closes, in which case whatever
    non-empty text arrived counts. The rest of the output is drained and
    the process is waited on before returning.

    Returns:
        Tuple of (first non-empty line or None, exit status).
    """
    proc = await asyncio.create_subprocess_shell(
        command,
        cwd=cwd,
        executable=shell,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.DEVNULL,
    )
    assert proc.stdout is not None
    buffer = ""
    line: str | None = None
    try:
        while line is None:
            chunk = await proc.stdout.read(CHUNK_SIZE)
            if not chunk:
                line = _first_non_empty(buffer, complete_only=False)
                break
            buffer += chunk.decode("utf-8", errors="replace")
            line = _first_non_empty(buffer, complete_only=True)
        # Keep the pipe drained so the process can exit
        while await proc.stdout.read(CHUNK_SIZE):
            pass
        returncode = await proc.wait()
    except asyncio.CancelledError:
        await terminate(proc)
        raise
    return line, returncode


def _first_non_empty(text: str, *, complete_only: bool) -> str | None:
    lines = text.splitlines(keepends=True)
    for raw in lines:
        if complete_only and not raw.endswith(("\n", "\r")):
            return None
        stripped = raw.strip()
        if stripped:
            return stripped
    return None
