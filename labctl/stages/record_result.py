"""Record Result Stage - turns an exit code into success/failure markers."""

from pathlib import Path

from stageflow import StageContext, StageKind, StageOutput

from ..models import TaskOutcome
from ..utils.logger import get_logger
from ..workspace import ScratchWorkspace

logger = get_logger("record_result")


class RecordResultStage:
    """Stage that writes the task's marker. Success discards the log, failure keeps it."""

    name = "record_result"
    kind = StageKind.WORK

    def __init__(self, workspace: ScratchWorkspace):
        self.workspace = workspace

    async def execute(self, ctx: StageContext) -> StageOutput:
        task_id = ctx.inputs.get_from("run_verify", "task_id")
        exit_code = ctx.inputs.get_from("run_verify", "exit_code")
        if not task_id or exit_code is None:
            return StageOutput.fail(error="No exit code provided from run_verify stage")

        log_path = ctx.inputs.get_from("run_verify", "log_path", default=None)

        if exit_code == 0:
            self.workspace.success_marker(task_id).touch()
            if log_path:
                Path(log_path).unlink(missing_ok=True)
            outcome = TaskOutcome.SUCCESS
            logger.info(f"{task_id} passed")
        else:
            self.workspace.failure_marker(task_id).write_text(f"{exit_code}\n")
            outcome = TaskOutcome.FAILURE
            logger.warning(f"{task_id} failed (exit {exit_code})")

        ctx.try_emit_event("verify.recorded", {"task_id": task_id, "outcome": outcome.value})

        return StageOutput.ok(task_id=task_id, outcome=outcome.value, exit_code=exit_code)
