"""
Staged scheduler for preflight verification.

Stage 1 runs producers one at a time in discovery order and stops at the
first failure. Stage 2 runs every consumer concurrently, bounded by a
worker count, and only starts once all producers have passed.
"""

import asyncio
from typing import Callable

from .config import SchedulerConfig
from .errors import WorkflowInterrupted
from .executor import TaskExecutor
from .models import SchedulerReport, Task, TaskResult
from .step_runner import CancellationToken
from .utils.logger import get_logger
from .workspace import ScratchWorkspace

logger = get_logger("scheduler")

ExecutorFactory = Callable[[SchedulerConfig, ScratchWorkspace], TaskExecutor]


class StagedScheduler:
    """Producers sequentially with fail-fast, then consumers in parallel."""

    def __init__(
        self,
        config: SchedulerConfig,
        cancel_token: CancellationToken | None = None,
        executor_factory: ExecutorFactory = TaskExecutor,
    ):
        self.config = config
        self.cancel_token = cancel_token or CancellationToken()
        self.executor_factory = executor_factory
        self._jobs: list[asyncio.Task] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self.cancel_token.on_cancel(self._on_cancel)

    @staticmethod
    def partition(tasks: list[Task]) -> tuple[list[Task], list[Task]]:
        """Split into (producers, consumers), keeping discovery order."""
        producers = [t for t in tasks if t.is_producer]
        consumers = [t for t in tasks if not t.is_producer]
        return producers, consumers

    def _on_cancel(self) -> None:
        # May run from a signal handler; hop onto the loop thread
        if self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self.cancel_all)

    def cancel_all(self) -> None:
        """Cancel every running job. Their verify processes are terminated on the way out."""
        for job in self._jobs:
            job.cancel()

    async def _await_jobs(self, jobs: list[asyncio.Task]) -> list[TaskResult]:
        self._jobs = jobs
        try:
            return await asyncio.gather(*jobs)
        except (asyncio.CancelledError, WorkflowInterrupted):
            for job in jobs:
                job.cancel()
            await asyncio.gather(*jobs, return_exceptions=True)
            raise WorkflowInterrupted("Verification interrupted; partial results discarded")
        finally:
            self._jobs = []

    async def run(self, tasks: list[Task], workspace: ScratchWorkspace) -> SchedulerReport:
        """Run ``tasks`` in two stages. Raises WorkflowInterrupted when cancelled."""
        self._loop = asyncio.get_running_loop()
        executor = self.executor_factory(self.config, workspace)
        producers, consumers = self.partition(tasks)
        report = SchedulerReport(producers=producers, consumers=consumers)

        logger.info(f"Stage 1: {len(producers)} producer(s), sequential")
        for producer in producers:
            self.cancel_token.raise_if_cancelled()
            [result] = await self._await_jobs([asyncio.create_task(executor.execute(producer))])
            report.results.append(result)
            if not result.succeeded:
                report.producer_failed = True
                report.failed_producer = producer.identifier
                logger.error(f"Producer {producer.identifier} failed; skipping {len(consumers)} consumer(s)")
                return report

        if not consumers:
            return report

        self.cancel_token.raise_if_cancelled()
        workers = self.config.get_max_workers()
        logger.info(f"Stage 2: {len(consumers)} consumer(s), up to {workers} in parallel")
        semaphore = asyncio.Semaphore(workers)

        async def run_consumer(task: Task) -> TaskResult:
            async with semaphore:
                self.cancel_token.raise_if_cancelled()
                return await executor.execute(task)

        report.consumers_started = True
        results = await self._await_jobs([asyncio.create_task(run_consumer(t)) for t in consumers])
        report.results.extend(results)
        return report
