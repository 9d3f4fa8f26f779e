"""Tests for result aggregation and the printed report."""

import io

from ..aggregator import ResultAggregator
from ..models import SchedulerReport, VerificationSummary
from ..workspace import ScratchWorkspace


def record(workspace: ScratchWorkspace, task_id: str, exit_code: int, log: str = "") -> None:
    if exit_code == 0:
        workspace.success_marker(task_id).touch()
    else:
        workspace.failure_marker(task_id).write_text(f"{exit_code}\n")
        workspace.log_path(task_id).write_text(log)


class TestResultAggregator:
    """Tests for collecting and rendering results."""

    def test_collect_counts(self, tmp_path):
        workspace = ScratchWorkspace(tmp_path)
        record(workspace, "a", 0)
        record(workspace, "b", 0)
        record(workspace, "c", 4, "boom")

        summary = ResultAggregator(workspace).collect()

        assert summary.passed == 2
        assert summary.failed == 1
        assert summary.failures[0].exit_code == 4
        assert summary.failures[0].log == "boom"
        assert summary.exit_code == 1

    def test_all_passed_exits_zero(self, tmp_path):
        workspace = ScratchWorkspace(tmp_path)
        record(workspace, "a", 0)
        assert ResultAggregator(workspace).collect().exit_code == 0

    def test_producer_failure_alone_exits_one(self, tmp_path):
        workspace = ScratchWorkspace(tmp_path)
        report = SchedulerReport(producer_failed=True, failed_producer="gen")
        summary = ResultAggregator(workspace).collect(report)
        assert summary.failed == 0
        assert summary.exit_code == 1

    def test_render_output(self, tmp_path):
        workspace = ScratchWorkspace(tmp_path)
        record(workspace, "lib", 0)
        record(workspace, "svc", 7, "expected 1 got 2\n")
        aggregator = ResultAggregator(workspace)

        out = io.StringIO()
        aggregator.render(aggregator.collect(), out)
        text = out.getvalue()

        assert "SUCCESS: lib" in text
        assert "FAILURE: svc (exit 7)" in text
        assert "expected 1 got 2" in text
        assert text.rstrip().endswith("Results: 1 passed, 1 failed")

    def test_render_producer_failure(self, tmp_path):
        out = io.StringIO()
        summary = VerificationSummary(producer_failed=True, failed_producer="gen")
        ResultAggregator(ScratchWorkspace(tmp_path)).render(summary, out)
        assert "Producer gen failed" in out.getvalue()
        assert "Results: 0 passed, 0 failed" in out.getvalue()

    def test_workspace_cleanup(self, tmp_path):
        with ScratchWorkspace(tmp_path / "scratch") as workspace:
            record(workspace, "a", 0)
        assert not (tmp_path / "scratch").exists()
