"""Utility exports for Mender."""
from mender.src.utils.config import CONFIG, AdvisorConfig, AppConfig, BrowserConfig, PoolConfig, RepairConfig
from mender.src.utils.errors import (
    AdvisorError,
    InvalidRepairAction,
    MenderError,
    PoolClosedError,
    ScriptInputError,
    StepExecutionError,
)
from mender.src.utils.models import (
    ConfidenceAssessment,
    ExecutionMode,
    ExecutionResult,
    InsertStep,
    Job,
    ModifyStep,
    NewStep,
    PageState,
    RemoveStep,
    RepairAction,
    RepairStatus,
    RepairSuggestion,
    RunStatus,
    ScriptExecutionRequest,
    Step,
    StepStatus,
)

__all__ = [
    "CONFIG",
    "AdvisorConfig",
    "AppConfig",
    "BrowserConfig",
    "PoolConfig",
    "RepairConfig",
    "AdvisorError",
    "InvalidRepairAction",
    "MenderError",
    "PoolClosedError",
    "ScriptInputError",
    "StepExecutionError",
    "ConfidenceAssessment",
    "ExecutionMode",
    "ExecutionResult",
    "InsertStep",
    "Job",
    "ModifyStep",
    "NewStep",
    "PageState",
    "RemoveStep",
    "RepairAction",
    "RepairStatus",
    "RepairSuggestion",
    "RunStatus",
    "ScriptExecutionRequest",
    "Step",
    "StepStatus",
]
