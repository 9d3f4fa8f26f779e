"""Result aggregation and reporting for preflight runs."""

import sys
from typing import TextIO

from .models import SchedulerReport, TaskOutcome, VerificationSummary
from .workspace import ScratchWorkspace


class ResultAggregator:
    """Reads markers from a scratch workspace and reports them."""

    def __init__(self, workspace: ScratchWorkspace):
        self.workspace = workspace

    def collect(self, report: SchedulerReport | None = None) -> VerificationSummary:
        summary = VerificationSummary()
        for result in self.workspace.iter_results():
            if result.outcome == TaskOutcome.SUCCESS:
                summary.successes.append(result.task_id)
            else:
                summary.failures.append(result)
        if report is not None:
            summary.producer_failed = report.producer_failed
            summary.failed_producer = report.failed_producer
        return summary

    def render(self, summary: VerificationSummary, stream: TextIO | None = None) -> None:
        out = stream or sys.stdout

        for task_id in summary.successes:
            print(f"SUCCESS: {task_id}", file=out)

        for failure in summary.failures:
            print(f"FAILURE: {failure.task_id} (exit {failure.exit_code})", file=out)
            if failure.log:
                print(f"----- {failure.task_id} log -----", file=out)
                print(failure.log.rstrip("\n"), file=out)
                print(f"----- end {failure.task_id} log -----", file=out)

        if summary.producer_failed:
            print(
                f"Producer {summary.failed_producer} failed; consumer verification was skipped.",
                file=out,
            )

        print(f"Results: {summary.passed} passed, {summary.failed} failed", file=out)
