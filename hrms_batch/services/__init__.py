"""Batch services: executor, probation sweep driver and daily scheduler."""

from hrms_batch.services.executor import BatchExecutor
from hrms_batch.services.scheduler import DailySweepScheduler, session_sweep_runner
from hrms_batch.services.sweep import ProbationSweepDriver

__all__ = [
    "BatchExecutor",
    "DailySweepScheduler",
    "ProbationSweepDriver",
    "session_sweep_runner",
]
