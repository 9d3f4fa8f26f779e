"""
Run Verify Stage - executes a project's verify script.

Features:
- Project directory as working directory
- stdout and stderr merged into one per-task log
- Exit code captured the moment the process exits
- Best-effort termination on cancellation
"""

import asyncio
import shlex
from pathlib import Path

from stageflow import StageContext, StageKind, StageOutput

from ..config import SchedulerConfig
from ..utils.logger import get_logger
from ..utils.process_utils import COMMAND_NOT_FOUND, terminate_process
from ..workspace import ScratchWorkspace

logger = get_logger("run_verify")


class RunVerifyStage:
    """Stage that spawns the verify command for one task."""

    name = "run_verify"
    kind = StageKind.WORK

    def __init__(self, config: SchedulerConfig, workspace: ScratchWorkspace):
        self.config = config
        self.workspace = workspace
        self._active_processes: dict[str, asyncio.subprocess.Process] = {}

    async def execute(self, ctx: StageContext) -> StageOutput:
        metadata = ctx.snapshot.metadata or {}
        task_id = metadata.get("task_id")
        task_dir = metadata.get("task_dir")
        if not task_id or not task_dir:
            return StageOutput.fail(error="No task in context metadata")

        argv = self.config.get_verify_command(metadata.get("verify_script", ""))
        log_path = self.workspace.log_path(task_id)

        ctx.try_emit_event("verify.started", {"task_id": task_id, "command": shlex.join(argv)})
        logger.debug(f"[{task_id}] {shlex.join(argv)} in {task_dir}")

        with open(log_path, "wb") as log:
            try:
                process = await asyncio.create_subprocess_exec(
                    *argv,
                    cwd=str(Path(task_dir)),
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=log,
                    stderr=asyncio.subprocess.STDOUT,
                )
            except OSError as e:
                log.write(f"Failed to start {shlex.join(argv)}: {e}\n".encode())
                exit_code = COMMAND_NOT_FOUND
            else:
                self._active_processes[task_id] = process
                try:
                    exit_code = await process.wait()
                except asyncio.CancelledError:
                    await terminate_process(process)
                    raise
                finally:
                    self._active_processes.pop(task_id, None)

        ctx.try_emit_event("verify.completed", {"task_id": task_id, "exit_code": exit_code})

        return StageOutput.ok(
            task_id=task_id,
            exit_code=exit_code,
            log_path=str(log_path),
        )

    async def cancel_all(self) -> None:
        """Terminate every in-flight verify process."""
        processes = list(self._active_processes.values())
        self._active_processes.clear()
        await asyncio.gather(*(terminate_process(p) for p in processes), return_exceptions=True)
