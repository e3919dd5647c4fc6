"""
Child process execution with timeout and cancellation handling.
"""

import asyncio
import logging
import time
from typing import Dict, List, Optional, Sequence

from ..errors import CommandTimeoutError
from ..models.installation import CommandResult


logger = logging.getLogger(__name__)


async def _terminate(process: asyncio.subprocess.Process) -> None:
    """Terminate a child and wait for it to exit."""
    if process.returncode is not None:
        return
    try:
        process.terminate()
    except ProcessLookupError:
        return
    await process.wait()


async def run_command(command: Sequence[str],
                      env: Optional[Dict[str, str]] = None,
                      timeout: Optional[float] = None) -> CommandResult:
    """
    Run ``command`` to completion, capturing stdout and stderr.

    Args:
        command: Argument vector; the first element is resolved on PATH
        env: Full child environment, inherited when None
        timeout: Seconds before the child is terminated, no limit when None

    Returns:
        Captured command result

    Raises:
        OSError: if the executable cannot be started; FileNotFoundError when
            it does not exist, PermissionError when it is not executable
        CommandTimeoutError: if the timeout expires
        asyncio.CancelledError: after terminating the child on cancellation
    """
    argv: List[str] = list(command)
    logger.info(f"+ {' '.join(argv)}")
    start = time.monotonic()

    process = await asyncio.create_subprocess_exec(
        *argv,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        env=env
    )

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        await _terminate(process)
        raise CommandTimeoutError(argv, timeout)
    except asyncio.CancelledError:
        logger.warning(f"Cancelled, terminating {argv[0]} (pid {process.pid})")
        await _terminate(process)
        raise

    return CommandResult(
        command=argv,
        returncode=process.returncode,
        stdout=stdout.decode(errors="replace") if stdout else "",
        stderr=stderr.decode(errors="replace") if stderr else "",
        duration_seconds=time.monotonic() - start
    )


async def run_streaming(command: Sequence[str],
                        env: Optional[Dict[str, str]] = None,
                        timeout: Optional[float] = None) -> int:
    """
    Run ``command`` with stdout and stderr inherited from this process.

    Returns the child's exit status unchanged. Raises the same errors as
    :func:`run_command`.
    """
    argv: List[str] = list(command)
    logger.info(f"+ {' '.join(argv)}")

    process = await asyncio.create_subprocess_exec(*argv, env=env)

    try:
        return await asyncio.wait_for(process.wait(), timeout=timeout)
    except asyncio.TimeoutError:
        await _terminate(process)
        raise CommandTimeoutError(argv, timeout)
    except asyncio.CancelledError:
        logger.warning(f"Cancelled, terminating {argv[0]} (pid {process.pid})")
        await _terminate(process)
        raise
