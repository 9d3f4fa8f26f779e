"""Utility helpers for working with external processes."""

from __future__ import annotations

import asyncio
import os
import shlex
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from .logger import get_logger

logger = get_logger("process")

# Exit code reported when a command cannot be spawned at all
COMMAND_NOT_FOUND = 127


def resolve_executable(command: str) -> str:
    """Resolve an executable command name to an absolute path.

    Raises FileNotFoundError if the command cannot be located or is not executable.
    """
    if not command:
        raise FileNotFoundError("Command is empty")

    if os.path.sep in command or command.startswith("."):
        candidate = Path(command).expanduser().resolve()
        if not candidate.exists():
            raise FileNotFoundError(f"Command not found: {candidate}")
        if not os.access(candidate, os.X_OK):
            raise FileNotFoundError(f"Command is not executable: {candidate}")
        return str(candidate)

    which = shutil.which(command)
    if not which:
        raise FileNotFoundError(f"Command '{command}' not found on PATH")
    return which


def command_exists(command: str) -> bool:
    """True when ``command`` resolves to an executable."""
    try:
        resolve_executable(command)
    except FileNotFoundError:
        return False
    return True


def get_cpu_cores(fallback: int = 2) -> int:
    """Logical CPU count, or ``fallback`` when it cannot be determined."""
    return os.cpu_count() or fallback


def capture_output(argv: list[str], timeout: float | None = None) -> str | None:
    """Run ``argv`` and return stripped stdout, or None if it fails in any way."""
    try:
        completed = subprocess.run(
            argv, capture_output=True, text=True, timeout=timeout, check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug(f"{shlex.join(argv)} could not run: {e}")
        return None
    if completed.returncode != 0:
        return None
    return completed.stdout.strip()


@dataclass
class Command:
    """A blocking external command usable as a step or retry action.

    Calling it runs the process and returns whether it exited 0. ``str()``
    renders the shell line, which is what failure logs show.
    """
    argv: list[str]
    cwd: Path | None = None
    timeout: float | None = None
    env: dict[str, str] | None = None
    quiet: bool = True
    last_exit_code: int | None = field(default=None, init=False, compare=False)

    def __call__(self) -> bool:
        return self.run() == 0

    def run(self) -> int:
        """Run the command and return its exit code (127 if it cannot start, 124 on timeout)."""
        env = None
        if self.env:
            env = os.environ.copy()
            env.update(self.env)

        output = subprocess.DEVNULL if self.quiet else None
        logger.debug(f"Running: {self}")
        try:
            completed = subprocess.run(
                self.argv,
                cwd=self.cwd,
                env=env,
                stdout=output,
                stderr=output,
                timeout=self.timeout,
                check=False,
            )
            code = completed.returncode
        except FileNotFoundError:
            logger.debug(f"Executable not found: {self.argv[0]}")
            code = COMMAND_NOT_FOUND
        except subprocess.TimeoutExpired:
            logger.warning(f"Timed out after {self.timeout}s: {self}")
            code = 124

        self.last_exit_code = code
        return code

    def __str__(self) -> str:
        return shlex.join(self.argv)


async def terminate_process(process: asyncio.subprocess.Process, grace_s: float = 5.0) -> None:
    """SIGTERM, wait up to ``grace_s``, then SIGKILL. Best-effort."""
    if process.returncode is not None:
        return
    try:
        process.terminate()
    except ProcessLookupError:
        return
    try:
        await asyncio.wait_for(process.wait(), timeout=grace_s)
    except asyncio.TimeoutError:
        try:
            process.kill()
        except ProcessLookupError:
            return
        await process.wait()
