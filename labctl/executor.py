"""
Per-task executor: runs one task through the run_verify -> record_result pipeline.
"""

from uuid import uuid4

from stageflow import Pipeline, PipelineTimer, StageContext, StageKind
from stageflow.context import ContextSnapshot, RunIdentity
from stageflow.stages import StageInputs

from .config import SchedulerConfig
from .models import Task, TaskOutcome, TaskResult
from .stages import RecordResultStage, RunVerifyStage
from .utils.logger import get_logger
from .workspace import ScratchWorkspace

logger = get_logger("executor")


class TaskExecutor:
    """Executes verification tasks against one scratch workspace."""

    def __init__(self, config: SchedulerConfig, workspace: ScratchWorkspace):
        self.config = config
        self.workspace = workspace
        self.run_verify_stage = RunVerifyStage(config, workspace)
        self.record_result_stage = RecordResultStage(workspace)
        self._pipeline = self._build_pipeline()

    def _build_pipeline(self) -> Pipeline:
        return (
            Pipeline()
            .with_stage("run_verify", self.run_verify_stage, StageKind.WORK)
            .with_stage(
                "record_result",
                self.record_result_stage,
                StageKind.WORK,
                dependencies=("run_verify",),
            )
        )

    def _build_context(self, task: Task) -> StageContext:
        snapshot = ContextSnapshot(
            run_id=RunIdentity(
                pipeline_run_id=uuid4(),
                request_id=uuid4(),
                session_id=uuid4(),
                user_id=None,
                org_id=None,
                interaction_id=uuid4(),
            ),
            topology="labctl_preflight",
            execution_mode="default",
            metadata={
                "task_id": task.identifier,
                "task_dir": str(task.directory),
                "verify_script": task.verify_script,
                "role": task.role.value,
            },
        )
        return StageContext(
            snapshot=snapshot,
            inputs=StageInputs(snapshot=snapshot),
            stage_name="pipeline",
            timer=PipelineTimer(),
        )

    async def execute(self, task: Task) -> TaskResult:
        """Run ``task`` and return what its markers recorded."""
        logger.info(f"Verifying {task.identifier}")
        graph = self._pipeline.build()
        try:
            await graph.run(self._build_context(task))
        except Exception as e:
            logger.error(f"Pipeline failed for {task.identifier}: {e}", extra={"error_type": type(e).__name__})

        result = self.workspace.read_result(task.identifier)
        if result is None:
            # No marker written; count it as a failure
            self.workspace.failure_marker(task.identifier).write_text("1\n")
            return TaskResult(task_id=task.identifier, outcome=TaskOutcome.FAILURE, exit_code=1, log="")
        return result

    async def cancel_all(self) -> None:
        """Terminate every in-flight verify process."""
        await self.run_verify_stage.cancel_all()
