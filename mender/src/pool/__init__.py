"""Concurrent job pool."""
from mender.src.pool.job_queue import JobQueue
from mender.src.pool.pool import JOB_COMPLETE, JOB_ERROR, WorkerPool
from mender.src.pool.worker import PoolWorker, ScriptJob, ScriptWorker

__all__ = [
    "JobQueue",
    "JOB_COMPLETE",
    "JOB_ERROR",
    "WorkerPool",
    "PoolWorker",
    "ScriptJob",
    "ScriptWorker",
]
