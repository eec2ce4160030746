"""Shell command runner with timeout handling."""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60


@dataclass
class ShellResult:
    """Result of a shell command."""
    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    @property
    def output(self) -> str:
        """Combined stdout and stderr for diagnostics."""
        return f"{self.stdout}\n{self.stderr}".strip()


def _as_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode(errors="replace")
    return value


def run_shell(
    command: str,
    cwd: Path,
    timeout: float = DEFAULT_TIMEOUT,
) -> ShellResult:
    """
    Run a command through bash with timeout handling.

    The child is killed when the timeout expires; the result then carries
    timed_out=True and whatever output was captured before the kill.

    Args:
        command: Shell command line (e.g., "npm test")
        cwd: Working directory for the command
        timeout: Timeout in seconds

    Returns:
        ShellResult with returncode, stdout, stderr, and timed_out flag
    """
    logger.debug(f"Running '{command}' in {cwd} (timeout {timeout}s)")
    try:
        result = subprocess.run(
            ["bash", "-c", command],
            cwd=str(cwd),
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        return ShellResult(
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )
    except subprocess.TimeoutExpired as e:
        logger.warning(f"Command '{command}' timed out after {timeout}s")
        return ShellResult(
            returncode=-1,
            stdout=_as_text(e.stdout),
            stderr=_as_text(e.stderr) or f"Command timed out after {timeout}s",
            timed_out=True,
        )
    except OSError as e:
        logger.warning(f"Could not start '{command}': {e}")
        return ShellResult(returncode=-1, stdout="", stderr=str(e))
