# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Async subprocess runner shared by the snapshot and service backends.

Every host tool (lvcreate, mount, systemctl, sc.exe, powershell) is run
through run_command so failures surface as CommandError with the exit
code and stderr attached.
"""

import asyncio
from dataclasses import dataclass
from typing import Sequence

import structlog

from mongosnap.exceptions import CommandError

logger = structlog.get_logger()


@dataclass(frozen=True)
class CommandResult:
    """Captured output of a finished command."""

    args: tuple
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    await asyncio.shield(proc.wait())


async def run_command(
    args: Sequence[str],
    *,
    timeout: float | None = None,
    check: bool = True,
) -> CommandResult:
    """
    Run a command without a shell and capture its output.

    Args:
        args: Program and arguments
        timeout: Seconds before the process is killed (None: no bound)
        check: Raise CommandError on a non-zero exit code

    Returns:
        CommandResult with decoded stdout/stderr

    Raises:
        CommandError: If the program cannot be started, times out, or
            (with check=True) exits non-zero

    The child is killed if the awaiting task is cancelled.
    """
    argv = tuple(str(a) for a in args)
    logger.debug("command_started", args=list(argv))

    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise CommandError(
            f"Failed to execute {argv[0]}: {e}",
            details={"args": list(argv)},
        ) from e

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        await _kill(proc)
        raise CommandError(
            f"Command timed out after {timeout}s: {argv[0]}",
            details={"args": list(argv)},
        )
    except BaseException:
        # Cancelled by the caller: the child must not outlive the await
        await _kill(proc)
        logger.warning("command_cancelled", args=list(argv))
        raise

    result = CommandResult(
        args=argv,
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode(errors="replace") if stdout else "",
        stderr=stderr.decode(errors="replace") if stderr else "",
    )

    if check and not result.ok:
        raise CommandError(
            f"{argv[0]} exited with status {result.returncode}: {result.stderr.strip() or result.stdout.strip()}",
            details={"args": list(argv), "returncode": result.returncode},
        )

    return result
