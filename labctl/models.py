"""
Data models for labctl.

Step statuses are persisted by value; tasks and results live for one run only.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class StepStatus(str, Enum):
    """Persisted status of a bootstrap step."""
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    DEGRADED = "DEGRADED"

    @property
    def is_terminal(self) -> bool:
        """Terminal for the current run. Only COMPLETED is skipped on the next one."""
        return self in (StepStatus.COMPLETED, StepStatus.FAILED, StepStatus.DEGRADED)


class TaskRole(str, Enum):
    """Scheduling role of a verification task."""
    PRODUCER = "producer"
    CONSUMER = "consumer"


class TaskOutcome(str, Enum):
    """Outcome of one verification task."""
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class Task:
    """A workspace project that declares a verify script."""
    identifier: str
    directory: Path
    role: TaskRole = TaskRole.CONSUMER
    verify_script: str = ""

    @property
    def is_producer(self) -> bool:
        return self.role == TaskRole.PRODUCER


@dataclass(frozen=True)
class TaskResult:
    """Outcome of running a task's verify script. ``log`` is kept only on failure."""
    task_id: str
    outcome: TaskOutcome
    exit_code: int = 0
    log: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == TaskOutcome.SUCCESS


@dataclass
class SchedulerReport:
    """What the staged scheduler did in one run."""
    producers: list[Task] = field(default_factory=list)
    consumers: list[Task] = field(default_factory=list)
    producer_failed: bool = False
    failed_producer: str | None = None
    consumers_started: bool = False
    results: list[TaskResult] = field(default_factory=list)


@dataclass
class VerificationSummary:
    """Aggregated preflight results."""
    successes: list[str] = field(default_factory=list)
    failures: list[TaskResult] = field(default_factory=list)
    producer_failed: bool = False
    failed_producer: str | None = None

    @property
    def passed(self) -> int:
        return len(self.successes)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def exit_code(self) -> int:
        """0 only when nothing failed and every producer passed."""
        return 1 if self.failures or self.producer_failed else 0


@dataclass
class BootstrapResult:
    """Step names touched by one bootstrap invocation."""
    completed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    degraded: list[str] = field(default_factory=list)
