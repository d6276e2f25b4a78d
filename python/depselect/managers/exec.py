"""Running package manager commands."""

import logging
import os
import subprocess
import threading
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from ..errors import OperationCancelledError, ToolInvocationError

logger = logging.getLogger(__name__)

# How often a running command checks its cancellation token, in seconds
POLL_INTERVAL = 0.1


class CancellationToken:
    """Signals a pending command that the caller no longer wants its result."""

    def __init__(self):
        self._event = threading.Event()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()


@dataclass
class CommandResult:
    """Captured output of a finished command."""

    stdout: str
    stderr: str


def parse_stdout(result: CommandResult) -> str:
    """Return the first non-empty line of a command's output."""
    lines = [line for line in result.stdout.splitlines() if line]
    return lines[0] if lines else ""


def exec_command(
    command: Sequence[str],
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    cancellation_token: Optional[CancellationToken] = None,
) -> CommandResult:
    """
    Run a command to completion and capture its output.

    Args:
        command: Program and arguments
        cwd: Working directory for the command
        env: Variables added on top of the current environment
        cancellation_token: Kills the process when cancelled

    Returns:
        CommandResult with decoded stdout and stderr

    Raises:
        ToolInvocationError: If the program cannot be started or exits non-zero
        OperationCancelledError: If the token is cancelled before the command finishes
    """
    command = list(command)
    logger.debug(f"Running: {' '.join(command)} (cwd={cwd})")

    process_env = None
    if env:
        process_env = {**os.environ, **env}

    try:
        process = subprocess.Popen(
            command,
            cwd=cwd,
            env=process_env,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding='utf-8',
            # undecodable bytes (non UTF-8 paths) round-trip like os.fsdecode
            errors='surrogateescape',
        )
    except OSError as e:
        raise ToolInvocationError(f"Could not run '{' '.join(command)}': {e}", command=command) from e

    while True:
        if cancellation_token is not None and cancellation_token.is_cancelled:
            process.kill()
            process.communicate()
            raise OperationCancelledError(f"Cancelled: {' '.join(command)}")
        try:
            stdout, stderr = process.communicate(timeout=POLL_INTERVAL)
            break
        except subprocess.TimeoutExpired:
            continue

    if process.returncode != 0:
        logger.debug(f"Command failed with exit code {process.returncode}: {stderr.strip()}")
        raise ToolInvocationError(
            f"Command '{' '.join(command)}' failed with exit code {process.returncode}: {stderr.strip()}",
            command=command,
            returncode=process.returncode,
            stderr=stderr,
        )

    return CommandResult(stdout=stdout, stderr=stderr)
