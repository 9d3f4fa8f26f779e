"""
Preflight: discover verifiable projects, run them in stages, report.
"""

import sys
from typing import TextIO

from .aggregator import ResultAggregator
from .config import LabConfig
from .discovery import TaskProvider, WorkspaceTaskProvider
from .errors import LabError
from .scheduler import StagedScheduler
from .step_runner import CancellationToken
from .utils.logger import get_logger
from .utils.process_utils import resolve_executable
from .workspace import ScratchWorkspace

logger = get_logger("preflight")


class PreflightRunner:
    """Wires discovery, the staged scheduler and the aggregator together."""

    def __init__(
        self,
        config: LabConfig,
        provider: TaskProvider | None = None,
        cancel_token: CancellationToken | None = None,
        stream: TextIO | None = None,
    ):
        self.config = config
        self.provider = provider or WorkspaceTaskProvider(config.repo_root, config.scheduler)
        self.cancel_token = cancel_token or CancellationToken()
        self.stream = stream or sys.stdout

    def validate_environment(self) -> None:
        """Fail fast if the verify command cannot be found."""
        executable = self.config.scheduler.get_verify_command()[0]
        try:
            resolve_executable(executable)
        except FileNotFoundError as e:
            raise LabError(f"{e}. Run 'labctl setup' first.") from e

    async def run(self) -> int:
        """Returns the process exit status: 0 all passed, 1 anything failed."""
        self.validate_environment()

        tasks = self.provider.discover()
        if not tasks:
            logger.warning("No projects with a verify script found")
            return 0

        scheduler = StagedScheduler(self.config.scheduler, cancel_token=self.cancel_token)
        with ScratchWorkspace() as workspace:
            report = await scheduler.run(tasks, workspace)
            aggregator = ResultAggregator(workspace)
            summary = aggregator.collect(report)
            aggregator.render(summary, self.stream)

        if summary.exit_code == 0:
            logger.info("Preflight passed")
        else:
            logger.error("Preflight failed")
        return summary.exit_code
