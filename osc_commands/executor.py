"""
Command Executor

Runs a resolved argument vector as a child process and captures its
output. There is no shell layer and no timeout; exit codes are logged
but do not turn a run into a failure.
"""

import logging
import subprocess
from dataclasses import dataclass

from .errors import ExecError
from .model import ResolvedCommand

logger = logging.getLogger(__name__)

ENCODING_ERROR_OUTPUT = "cannot display output due to an encoding error"


@dataclass(frozen=True)
class ExecResult:
    """Outcome of one child process."""
    returncode: int
    output: str
    stderr: bytes = b""


def decode_output(stdout: bytes) -> str:
    """UTF-8 decode and trim captured stdout, or return the placeholder."""
    try:
        return stdout.decode("utf-8").strip()
    except UnicodeDecodeError:
        return ENCODING_ERROR_OUTPUT


def run_command(address: str, command: ResolvedCommand) -> ExecResult:
    """
    Spawn `command` and block until it exits.

    Args:
        address: Originating OSC address (for diagnostics)
        command: Program name and arguments

    Returns:
        ExecResult with the exit code and trimmed stdout

    Raises:
        ExecError: If the process could not be spawned or waited on
    """
    try:
        completed = subprocess.run(
            list(command.tokens),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            shell=False,
            check=False,
        )
    except (OSError, ValueError, subprocess.SubprocessError) as exc:
        raise ExecError(address, exc) from exc

    if completed.returncode != 0:
        first_line = completed.stderr.decode("utf-8", errors="replace").strip().splitlines()[:1]
        logger.warning(
            f"  {command.program} exited with status {completed.returncode}"
            + (f": {first_line[0]}" if first_line else "")
        )

    return ExecResult(
        returncode=completed.returncode,
        output=decode_output(completed.stdout),
        stderr=completed.stderr,
    )
