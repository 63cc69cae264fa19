"""Mender package root exposing the run and repair entry points."""

from mender.src.advisor.client import LLMAdvisor
from mender.src.browser.session import PlaywrightDriver
from mender.src.pool.pool import WorkerPool
from mender.src.repair.engine import RepairEngine
from mender.src.repair.runner import RunController
from mender.src.report import build_summary
from mender.src.service import RunnerService

__all__ = [
    "LLMAdvisor",
    "PlaywrightDriver",
    "WorkerPool",
    "RepairEngine",
    "RunController",
    "build_summary",
    "RunnerService",
]
