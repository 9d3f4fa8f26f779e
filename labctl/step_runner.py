"""
Step runner: checkpointed execution of named bootstrap steps.

PENDING -> IN_PROGRESS -> COMPLETED | FAILED | DEGRADED. COMPLETED steps are
skipped, so re-running a workflow resumes at its first unfinished step.
"""

import threading
from typing import Any, Callable

from .checkpoint import CheckpointStore
from .errors import LabError, StepFailedError, WorkflowInterrupted
from .models import StepStatus
from .utils.logger import get_logger

logger = get_logger("step_runner")

Action = Callable[[], Any]


class CancellationToken:
    """Set once from a signal handler, polled between steps and tasks."""

    def __init__(self):
        self._event = threading.Event()
        self._callbacks: list[Callable[[], None]] = []

    def cancel(self) -> None:
        if self._event.is_set():
            return
        self._event.set()
        for callback in list(self._callbacks):
            callback()

    def on_cancel(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` when the token is cancelled (immediately if it already is)."""
        self._callbacks.append(callback)
        if self._event.is_set():
            callback()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise WorkflowInterrupted()

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds, returning early once cancelled."""
        return self._event.wait(timeout)


class StepRunner:
    """Runs actions as named steps recorded in a CheckpointStore."""

    def __init__(self, store: CheckpointStore, cancel_token: CancellationToken | None = None):
        self.store = store
        self.cancel_token = cancel_token or CancellationToken()
        self.current_step: str | None = None
        self.degraded_steps: list[str] = []
        self.skipped_steps: list[str] = []
        self.completed_steps: list[str] = []

    def _begin(self, name: str) -> bool:
        """Returns False when the step is already COMPLETED and must be skipped."""
        self.cancel_token.raise_if_cancelled()
        if self.store.get(name) == StepStatus.COMPLETED:
            logger.info(f"Skipping {name} (already completed)")
            self.skipped_steps.append(name)
            return False
        self.store.set(name, StepStatus.IN_PROGRESS)
        self.current_step = name
        logger.info(f"Running {name}")
        return True

    def _complete(self, name: str) -> None:
        self.store.set(name, StepStatus.COMPLETED)
        self.completed_steps.append(name)
        self.current_step = None
        logger.debug(f"Completed {name}")

    def run_step(self, name: str, action: Action) -> bool:
        """Run a fatal step. Raises StepFailedError when ``action`` fails.

        The failing step stays recorded as the current step so the recovery
        guard can report it.
        """
        if not self._begin(name):
            return True

        try:
            result = action()
        except (KeyboardInterrupt, WorkflowInterrupted):
            raise
        except LabError as e:
            self.cancel_token.raise_if_cancelled()
            self.store.set(name, StepStatus.FAILED)
            raise StepFailedError(name, e.exit_code, cause=e) from e
        except Exception as e:
            self.cancel_token.raise_if_cancelled()
            self.store.set(name, StepStatus.FAILED)
            raise StepFailedError(name, cause=e) from e

        if result is False:
            # A child killed by the same signal looks like a failure
            self.cancel_token.raise_if_cancelled()
            self.store.set(name, StepStatus.FAILED)
            exit_code = getattr(action, "last_exit_code", None) or 1
            raise StepFailedError(name, exit_code)

        self._complete(name)
        return True

    def run_step_degraded(self, name: str, action: Action) -> bool:
        """Run a non-critical step. A failure records DEGRADED and the workflow continues."""
        if not self._begin(name):
            return True

        try:
            result = action()
        except (KeyboardInterrupt, WorkflowInterrupted):
            raise
        except Exception as e:
            logger.debug(f"{name} raised: {e}")
            result = False

        if result is False:
            self.cancel_token.raise_if_cancelled()
            self.store.set(name, StepStatus.DEGRADED)
            self.degraded_steps.append(name)
            self.current_step = None
            logger.warning(f"{name} failed, continuing in degraded mode")
            return True

        self._complete(name)
        return True
