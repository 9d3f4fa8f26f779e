"""Scratch workspace holding per-task markers and logs for one preflight run."""

import shutil
import tempfile
from pathlib import Path

from .models import TaskOutcome, TaskResult
from .utils.logger import get_logger

logger = get_logger("workspace")

SUCCESS_SUFFIX = ".success"
FAILURE_SUFFIX = ".failure"


class ScratchWorkspace:
    """Fresh temp directory with ``results/`` and ``logs/``; removed on exit.

    Every path is derived from a task id, so concurrent tasks never share a file.
    """

    def __init__(self, root: Path | None = None, prefix: str = "labctl-preflight-"):
        self.root = Path(root) if root else Path(tempfile.mkdtemp(prefix=prefix))
        self.results_dir = self.root / "results"
        self.logs_dir = self.root / "logs"
        self.results_dir.mkdir(parents=True, exist_ok=True)
        self.logs_dir.mkdir(parents=True, exist_ok=True)

    def __enter__(self) -> "ScratchWorkspace":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.cleanup()
        return False

    def log_path(self, task_id: str) -> Path:
        return self.logs_dir / f"{task_id}.log"

    def success_marker(self, task_id: str) -> Path:
        return self.results_dir / f"{task_id}{SUCCESS_SUFFIX}"

    def failure_marker(self, task_id: str) -> Path:
        return self.results_dir / f"{task_id}{FAILURE_SUFFIX}"

    def read_result(self, task_id: str) -> TaskResult | None:
        """Result recorded for ``task_id``, or None if it never finished."""
        if self.success_marker(task_id).exists():
            return TaskResult(task_id=task_id, outcome=TaskOutcome.SUCCESS)

        marker = self.failure_marker(task_id)
        if not marker.exists():
            return None
        try:
            exit_code = int(marker.read_text().strip() or 1)
        except ValueError:
            exit_code = 1
        log_file = self.log_path(task_id)
        log = log_file.read_text(errors="replace") if log_file.exists() else ""
        return TaskResult(task_id=task_id, outcome=TaskOutcome.FAILURE, exit_code=exit_code, log=log)

    def iter_results(self) -> list[TaskResult]:
        """Every recorded result, sorted by task id."""
        ids = set()
        for marker in self.results_dir.iterdir():
            if marker.suffix in (SUCCESS_SUFFIX, FAILURE_SUFFIX):
                ids.add(marker.stem)
        return [result for task_id in sorted(ids) if (result := self.read_result(task_id))]

    def cleanup(self) -> None:
        if self.root.exists():
            shutil.rmtree(self.root, ignore_errors=True)
            logger.debug(f"Removed scratch workspace {self.root}")
