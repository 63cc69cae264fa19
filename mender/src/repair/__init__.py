"""Step repair engine and run controller."""
from mender.src.repair.confidence import ConfidenceAssessor, RepairVerdict
from mender.src.repair.context import ExecutionContext, RecentRepairs, build_failure_history
from mender.src.repair.engine import RepairEngine, RepairOutcome, apply_action, bind_action
from mender.src.repair.event_log import RepairLog
from mender.src.repair.runner import RunController

__all__ = [
    "ConfidenceAssessor",
    "RepairVerdict",
    "ExecutionContext",
    "RecentRepairs",
    "build_failure_history",
    "RepairEngine",
    "RepairOutcome",
    "apply_action",
    "bind_action",
    "RepairLog",
    "RunController",
]
