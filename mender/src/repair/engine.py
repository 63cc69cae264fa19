"""Step-level repair loop for one script."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from mender.src.advisor.client import Advisor
from mender.src.browser.executor import describe_error
from mender.src.browser.session import BrowserSession
from mender.src.repair.context import AttemptHistory, ExecutionContext, RecentRepairs
from mender.src.repair.event_log import RepairLog
from mender.src.utils.config import CONFIG
from mender.src.utils.errors import InvalidRepairAction
from mender.src.utils.models import (
    InsertStep,
    ModifyStep,
    NewStep,
    RecentRepairEntry,
    RemoveStep,
    RepairAction,
    RepairAttemptRecord,
    RepairStatus,
    Step,
    StepStatus,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AppliedAction:
    steps: List[Step]
    cursor: int
    new_index: Optional[int] = None
    before: Optional[Step] = None


def bind_action(action: RepairAction, cursor: int) -> RepairAction:
    """Point the action at the failing step; inserts go right before it."""
    if isinstance(action, InsertStep):
        return action.model_copy(update={"insert_after_index": cursor - 1})
    return action.model_copy(update={"step_index": cursor})


def apply_action(steps: List[Step], action: RepairAction, cursor: int) -> AppliedAction:
    """Return a new step list with ``action`` applied and the adjusted cursor.

    The input list is left untouched so a failed attempt needs no rollback.
    """
    size = len(steps)
    updated = list(steps)

    if isinstance(action, ModifyStep):
        index = action.step_index
        if index is None or not 0 <= index < size:
            raise InvalidRepairAction(f"MODIFY index {index} out of range for {size} steps")
        before = updated[index]
        updated[index] = action.new_step.to_step()
        return AppliedAction(updated, cursor + 1 if index == cursor else cursor, index, before)

    if isinstance(action, InsertStep):
        index = action.insert_after_index
        if index is None or not -1 <= index < size:
            raise InvalidRepairAction(f"INSERT after index {index} out of range for {size} steps")
        updated.insert(index + 1, action.new_step.to_step())
        return AppliedAction(updated, cursor + 1 if index < cursor else cursor, index + 1)

    if isinstance(action, RemoveStep):
        index = action.step_index
        if index is None or not 0 <= index < size:
            raise InvalidRepairAction(f"REMOVE index {index} out of range for {size} steps")
        before = updated.pop(index)
        return AppliedAction(updated, cursor - 1 if index < cursor else cursor, None, before)

    raise InvalidRepairAction(f"Unknown repair operation: {action!r}")


@dataclass(slots=True)
class RepairOutcome:
    steps: List[Step]
    repairs: int = 0
    last_error: Optional[str] = None
    halted_at: Optional[int] = None
    stop_reason: Optional[str] = None
    transcript: List[str] = field(default_factory=list)

    @property
    def all_steps_successful(self) -> bool:
        return bool(self.steps) and all(step.status == StepStatus.SUCCESS for step in self.steps)

    @property
    def has_successful_repairs(self) -> bool:
        return self.repairs > 0

    @property
    def repair_status(self) -> RepairStatus:
        if self.all_steps_successful:
            return RepairStatus.SUCCESS
        if self.has_successful_repairs:
            return RepairStatus.PARTIAL
        return RepairStatus.FAILED


class RepairEngine:
    """Runs steps in order on one session and repairs failures with the advisor."""

    def __init__(
        self,
        steps: List[Step],
        session: BrowserSession,
        advisor: Advisor,
        *,
        max_tries: Optional[int] = None,
        recent_repairs: Optional[int] = None,
        event_log: Optional[RepairLog] = None,
    ) -> None:
        self.steps = list(steps)
        self.session = session
        self.advisor = advisor
        self.max_tries = max_tries or CONFIG.repair.max_tries
        self.context = ExecutionContext()
        self.recent = RecentRepairs(recent_repairs or CONFIG.repair.recent_repairs)
        self.event_log = event_log or RepairLog()
        self.repairs = 0
        self.last_error: Optional[str] = None
        self.stop_reason: Optional[str] = None
        self._attempts: Dict[int, int] = {}

    async def run(self) -> RepairOutcome:
        i = 0
        halted_at: Optional[int] = None
        while i < len(self.steps):
            step = self.steps[i]
            try:
                await self.session.run(step.code, self.context)
            except Exception as exc:
                error = describe_error(exc)
                step.status = StepStatus.FAILED
                step.last_error = error
                self.last_error = error
                logger.info("[RepairEngine] step %d failed: %s", i + 1, error)
                self.event_log.log_step(i + 1, step.description, "failed", error)

                repaired, i = await self._repair(i)
                if not repaired:
                    halted_at = i
                    logger.info("[RepairEngine] halting at step %d", i + 1)
                    break
                continue

            step.status = StepStatus.SUCCESS
            self.context.record(step.code)
            self.event_log.log_step(i + 1, step.description, "success")
            i += 1

        outcome = RepairOutcome(
            steps=self.steps,
            repairs=self.repairs,
            last_error=self.last_error,
            halted_at=halted_at,
            stop_reason=self.stop_reason,
            transcript=list(self.context.transcript),
        )
        self.event_log.log_classification(
            outcome.repair_status.value,
            all_steps_successful=outcome.all_steps_successful,
            repairs=outcome.repairs,
        )
        return outcome

    async def _repair(self, cursor: int) -> Tuple[bool, int]:
        step = self.steps[cursor]
        original_error = step.last_error
        history = AttemptHistory(self.max_tries)

        # Budget is per step object so repeated inserts in front of it stay bounded.
        key = id(step)
        while self._attempts.get(key, 0) < self.max_tries:
            attempt = self._attempts.get(key, 0) + 1
            self._attempts[key] = attempt

            page_state = await self.session.current_state()
            try:
                suggestion = await self.advisor.suggest_repair(
                    step.description,
                    step.code,
                    original_error or "",
                    page_state,
                    history.render(original_error),
                    self.recent.render(),
                )
            except Exception as exc:
                error = f"Advisor error: {describe_error(exc)}"
                logger.warning("[RepairEngine] %s", error)
                history.add(RepairAttemptRecord(attempt_number=attempt, error=error, page_state=page_state.render()))
                self.event_log.log_repair_attempt(cursor + 1, attempt, None, "failed", error)
                continue

            if not suggestion.should_continue:
                self.stop_reason = suggestion.reason
                logger.info("[RepairEngine] advisor stopped repair of step %d: %s", cursor + 1, suggestion.reason)
                self.event_log.log_advisor_stop(cursor + 1, suggestion.reason)
                return False, cursor

            if suggestion.action is None:
                error = "Advisor returned no repair action"
                history.add(RepairAttemptRecord(attempt_number=attempt, error=error, page_state=page_state.render()))
                self.event_log.log_repair_attempt(cursor + 1, attempt, None, "failed", error)
                continue

            action = bind_action(suggestion.action, cursor)
            try:
                applied = apply_action(self.steps, action, cursor)
                new_step = applied.steps[applied.new_index] if applied.new_index is not None else None
                if new_step is not None:
                    await self.session.run(new_step.code, self.context)
                    new_step.status = StepStatus.SUCCESS
            except Exception as exc:
                error = describe_error(exc)
                self.last_error = error
                logger.info(
                    "[RepairEngine] %s attempt %d for step %d failed: %s", action.operation, attempt, cursor + 1, error
                )
                history.add(
                    RepairAttemptRecord(
                        attempt_number=attempt, action=action, error=error, page_state=page_state.render()
                    )
                )
                self.event_log.log_repair_attempt(cursor + 1, attempt, action.operation, "failed", error)
                continue

            self.steps = applied.steps
            self.repairs += 1
            if new_step is not None:
                self.context.record(new_step.code)
            self.recent.add(
                RecentRepairEntry(
                    step_number=cursor + 1,
                    operation=action.operation,
                    before=NewStep(description=applied.before.description, code=applied.before.code)
                    if applied.before is not None
                    else None,
                    after=NewStep(description=new_step.description, code=new_step.code) if new_step is not None else None,
                )
            )
            logger.info("[RepairEngine] %s repaired step %d on attempt %d", action.operation, cursor + 1, attempt)
            self.event_log.log_repair_attempt(cursor + 1, attempt, action.operation, "success")
            return True, applied.cursor

        return False, cursor
