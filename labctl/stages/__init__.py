"""Pipeline stages for per-task verification."""

from .run_verify import RunVerifyStage
from .record_result import RecordResultStage

__all__ = [
    "RunVerifyStage",
    "RecordResultStage",
]
