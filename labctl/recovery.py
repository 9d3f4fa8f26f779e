"""
Error and interrupt recovery for workflow commands.

``RecoveryGuard`` wraps a whole command. Whatever escapes it marks the
interrupted step FAILED, prints how to continue, and becomes a SystemExit
with the right status.
"""

import traceback
from types import TracebackType

from .errors import LabError, StepFailedError, WorkflowInterrupted
from .models import StepStatus
from .step_runner import StepRunner
from .utils.logger import get_logger

logger = get_logger("recovery")

INTERRUPT_EXIT_CODE = 130


def resume_guidance(prog: str = "labctl") -> list[str]:
    return [
        "Recovery options:",
        f"  {prog} status   # inspect recorded step state",
        f"  {prog} resume   # continue from the last completed step",
        f"  {prog} reset    # clear state and start over",
    ]


def _location(tb: TracebackType | None) -> str:
    frames = traceback.extract_tb(tb) if tb else []
    if not frames:
        return "unknown"
    frame = frames[-1]
    return f"{frame.filename}:{frame.lineno} in {frame.name}"


class RecoveryGuard:
    """Context manager installed once around a workflow command."""

    def __init__(self, runner: StepRunner | None = None, prog: str = "labctl"):
        self.runner = runner
        self.prog = prog

    def _mark_failed(self) -> str | None:
        if self.runner is None or not self.runner.current_step:
            return None
        step = self.runner.current_step
        if self.runner.store.get(step) == StepStatus.IN_PROGRESS:
            self.runner.store.set(step, StepStatus.FAILED)
        return step

    def _print_guidance(self) -> None:
        # status/resume/reset only mean something for checkpointed commands
        if self.runner is None:
            return
        for line in resume_guidance(self.prog):
            logger.info(line)

    def __enter__(self) -> "RecoveryGuard":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None or issubclass(exc_type, SystemExit):
            return False

        if issubclass(exc_type, (KeyboardInterrupt, WorkflowInterrupted)):
            step = self._mark_failed()
            where = f" during {step}" if step else ""
            logger.warning(f"Interrupted{where}")
            self._print_guidance()
            raise SystemExit(INTERRUPT_EXIT_CODE)

        step = self._mark_failed()
        if isinstance(exc, StepFailedError):
            step = exc.step

        exit_code = exc.exit_code if isinstance(exc, LabError) else 1
        logger.error(f"Failed: {exc}")
        if step:
            logger.error(f"Step: {step}")
        logger.error(f"Location: {_location(tb)}")
        logger.error(f"Exit code: {exit_code}")
        self._print_guidance()
        raise SystemExit(exit_code)
