"""Exception hierarchy for labctl.

Failures that abort a workflow are exceptions. Task verification failures are
values (``TaskResult``) and never raised. Degraded step failures are logged and
swallowed by the step runner.
"""


class LabError(Exception):
    """Base for all labctl errors. Carries the process exit code to use."""

    exit_code = 1

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class TransientError(LabError):
    """Retryable failure: network blips, registry not yet up, flaky installs."""


class CommandError(LabError):
    """An external command exited non-zero or could not be spawned."""

    def __init__(self, argv: list[str] | tuple[str, ...], exit_code: int, message: str | None = None):
        self.argv = list(argv)
        super().__init__(message or f"Command exited with {exit_code}: {' '.join(self.argv)}", exit_code)


class StepFailedError(LabError):
    """A non-degraded workflow step failed. Aborts the workflow."""

    def __init__(self, step: str, exit_code: int = 1, cause: BaseException | None = None):
        self.step = step
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Step {step} failed{detail}", exit_code)


class WorkflowInterrupted(LabError):
    """The run was cancelled by SIGINT/SIGTERM."""

    exit_code = 130

    def __init__(self, message: str = "Interrupted by user"):
        super().__init__(message)


class StateError(LabError):
    """Checkpoint state is missing or no longer matches the system."""

    def __init__(self, message: str, problems: list[str] | None = None):
        self.problems = problems or []
        super().__init__(message)
