"""Shared data models for Mender components."""
from __future__ import annotations

import time
import uuid
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class StepStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class RunStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class RepairStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class ExecutionMode(str, Enum):
    RUN_EXACTLY = "RUN_EXACTLY"
    RUN_WITH_AI_REPAIR = "RUN_WITH_AI_REPAIR"


class Step(BaseModel):
    """Single executable unit of a test script."""

    description: str
    code: str
    status: StepStatus = StepStatus.PENDING
    last_error: Optional[str] = None


class NewStep(BaseModel):
    """Step body proposed by the advisor."""

    description: str
    code: str

    def to_step(self) -> Step:
        return Step(description=self.description, code=self.code)


class ModifyStep(BaseModel):
    operation: Literal["MODIFY"] = "MODIFY"
    step_index: Optional[int] = None
    new_step: NewStep


class InsertStep(BaseModel):
    operation: Literal["INSERT"] = "INSERT"
    insert_after_index: Optional[int] = None
    new_step: NewStep


class RemoveStep(BaseModel):
    operation: Literal["REMOVE"] = "REMOVE"
    step_index: Optional[int] = None


RepairAction = Annotated[Union[ModifyStep, InsertStep, RemoveStep], Field(discriminator="operation")]


class RepairSuggestion(BaseModel):
    """Advisor answer for one failing step."""

    should_continue: bool = True
    reason: str = ""
    action: Optional[RepairAction] = None


class ConfidenceAssessment(BaseModel):
    confidence: int = Field(default=0, ge=0, le=5)
    advice: str = ""


class RepairAttemptRecord(BaseModel):
    attempt_number: int
    action: Optional[RepairAction] = None
    error: str
    page_state: str = ""


class RecentRepairEntry(BaseModel):
    step_number: int
    operation: str
    before: Optional[NewStep] = None
    after: Optional[NewStep] = None


class PageState(BaseModel):
    """Summarised snapshot of the page a step failed on."""

    url: str = ""
    title: str = ""
    elements: str = ""
    form_fields: str = ""
    interactive_elements: str = ""
    page_structure: str = ""

    def render(self) -> str:
        return (
            f"Current URL: {self.url}\n"
            f"Page Title: {self.title}\n"
            f"Available Elements: {self.elements}\n"
            f"Form Fields: {self.form_fields}\n"
            f"Interactive Elements: {self.interactive_elements}\n"
            f"Page Structure: {self.page_structure}"
        )


class ExecutionResult(BaseModel):
    """Outcome of running (and possibly repairing) one script."""

    model_config = ConfigDict(frozen=True)

    run_status: RunStatus
    repair_status: Optional[RepairStatus] = None
    repair_confidence: Optional[int] = None
    repair_advice: Optional[str] = None
    updated_script: Optional[str] = None
    num_deflake_runs: int = 0
    execution_time: int = 0
    error: Optional[str] = None


class ScriptExecutionRequest(BaseModel):
    """Caller-facing description of one run."""

    script: Optional[str] = None
    script_path: Optional[str] = None
    mode: ExecutionMode = ExecutionMode.RUN_WITH_AI_REPAIR
    deflake_run_count: int = Field(default=1, ge=0)
    headless: Optional[bool] = None
    model: Optional[str] = None
    playwright_config: Optional[str] = None
    repair_flexibility: int = Field(default=3, ge=0, le=5)


class Job(BaseModel):
    """Pool entry wrapping one request."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    payload: Any
    enqueue_time: float = Field(default_factory=time.time)
    requeue_count: int = 0

