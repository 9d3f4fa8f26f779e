"""
labctl: bootstrap and verify a multi-project lab workspace.

Features:
- Checkpointed setup steps that resume where they stopped
- Retry with linear backoff for flaky commands
- Degraded steps that never abort a run
- Staged preflight: producers first and fail-fast, consumers in parallel
"""

__version__ = "0.1.0"

from .checkpoint import CheckpointStore
from .config import LabConfig, RetryConfig, SchedulerConfig
from .models import StepStatus, Task, TaskResult, TaskRole
from .retry import retry_with_backoff
from .step_runner import CancellationToken, StepRunner

__all__ = [
    "CheckpointStore",
    "LabConfig",
    "RetryConfig",
    "SchedulerConfig",
    "StepStatus",
    "Task",
    "TaskResult",
    "TaskRole",
    "retry_with_backoff",
    "CancellationToken",
    "StepRunner",
    "__version__",
]
