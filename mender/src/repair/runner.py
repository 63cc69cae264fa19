"""Run scripts exactly, with deflake retries, and fall back to step repair."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import List, Optional

from mender.src.advisor.client import Advisor
from mender.src.browser.executor import describe_error
from mender.src.browser.session import BrowserDriver, BrowserSession
from mender.src.repair.confidence import NO_REPAIR_ADVICE, ConfidenceAssessor
from mender.src.repair.engine import RepairEngine
from mender.src.repair.event_log import RepairLog
from mender.src.steps.segmenter import StepSegmenter
from mender.src.utils.config import CONFIG, BrowserConfig, RepairConfig
from mender.src.utils.errors import ScriptInputError
from mender.src.utils.models import (
    ExecutionMode,
    ExecutionResult,
    RepairStatus,
    RunStatus,
    ScriptExecutionRequest,
    Step,
)

logger = logging.getLogger(__name__)


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


async def close_quietly(session: Optional[BrowserSession]) -> None:
    if session is None:
        return
    try:
        await session.close()
    except Exception as exc:
        logger.debug("[RunController] session close failed: %s", exc)


class RunController:
    """Entry point for one script: run exactly, then repair when asked to."""

    def __init__(
        self,
        driver: BrowserDriver,
        advisor: Advisor,
        *,
        browser_config: Optional[BrowserConfig] = None,
        repair_config: Optional[RepairConfig] = None,
        segmenter: Optional[StepSegmenter] = None,
    ) -> None:
        self.driver = driver
        self.advisor = advisor
        self.browser_config = browser_config or CONFIG.browser
        self.repair_config = repair_config or CONFIG.repair
        self.segmenter = segmenter or StepSegmenter()

    async def run_exactly(
        self,
        script: str,
        deflake_count: int,
        *,
        browser_config: Optional[BrowserConfig] = None,
    ) -> ExecutionResult:
        if not script or not script.strip():
            raise ScriptInputError("Script content is required")

        start = time.monotonic()
        deflake_count = max(0, deflake_count)
        total_attempts = deflake_count + 1
        last_error: Optional[str] = None

        for attempt in range(1, total_attempts + 1):
            session: Optional[BrowserSession] = None
            try:
                session = await self.driver.open_session(browser_config or self.browser_config)
                await session.run_script(script)
            except Exception as exc:
                last_error = describe_error(exc)
                logger.info("[RunController] attempt %d/%d failed: %s", attempt, total_attempts, last_error)
                continue
            finally:
                await close_quietly(session)

            logger.info("[RunController] script passed on attempt %d/%d", attempt, total_attempts)
            return ExecutionResult(
                run_status=RunStatus.SUCCESS,
                num_deflake_runs=attempt - 1,
                execution_time=_elapsed_ms(start),
            )

        return ExecutionResult(
            run_status=RunStatus.FAILED,
            num_deflake_runs=deflake_count,
            execution_time=_elapsed_ms(start),
            error=last_error,
        )

    def _resolve_browser_config(self, request: ScriptExecutionRequest) -> BrowserConfig:
        config = BrowserConfig.from_playwright_config(request.playwright_config, base=self.browser_config)
        return config.with_headless(request.headless)

    def _resolve_advisor(self, request: ScriptExecutionRequest) -> Advisor:
        with_options = getattr(self.advisor, "with_options", None)
        if with_options is None:
            return self.advisor
        return with_options(model=request.model, repair_flexibility=request.repair_flexibility)

    async def execute(self, request: ScriptExecutionRequest, event_log: Optional[RepairLog] = None) -> ExecutionResult:
        start = time.monotonic()
        script = request.script or ""
        if not script.strip():
            raise ScriptInputError("Script content is required")

        try:
            browser_config = self._resolve_browser_config(request)
            exact = await self.run_exactly(script, request.deflake_run_count, browser_config=browser_config)
            if request.mode == ExecutionMode.RUN_EXACTLY or exact.run_status == RunStatus.SUCCESS:
                return exact.model_copy(update={"execution_time": _elapsed_ms(start)})

            logger.info("[RunController] run failed, starting AI repair")
            advisor = self._resolve_advisor(request)
            return await self._repair(script, exact, advisor, browser_config, event_log or RepairLog(), start)
        except ScriptInputError:
            raise
        except Exception as exc:
            logger.exception("[RunController] execution failed")
            return ExecutionResult(
                run_status=RunStatus.FAILED,
                execution_time=_elapsed_ms(start),
                error=describe_error(exc),
            )

    async def segment(self, script: str, advisor: Optional[Advisor] = None) -> List[Step]:
        """Advisor segmentation, falling back to step markers when it fails or finds nothing."""
        advisor = advisor or self.advisor
        try:
            steps = await advisor.segment_script(script)
        except Exception as exc:
            logger.warning("[RunController] advisor segmentation failed, using step markers: %s", exc)
        else:
            if steps:
                return steps
            logger.warning("[RunController] advisor returned no steps, using step markers")
        return self.segmenter.segment(script)

    async def _repair(
        self,
        script: str,
        exact: ExecutionResult,
        advisor: Advisor,
        browser_config: BrowserConfig,
        event_log: RepairLog,
        start: float,
    ) -> ExecutionResult:
        steps, session = await asyncio.gather(
            self.segment(script, advisor),
            self.driver.open_session(browser_config),
        )
        try:
            if not steps:
                return ExecutionResult(
                    run_status=RunStatus.FAILED,
                    repair_status=RepairStatus.FAILED,
                    repair_confidence=0,
                    repair_advice=NO_REPAIR_ADVICE,
                    updated_script=script,
                    num_deflake_runs=exact.num_deflake_runs,
                    execution_time=_elapsed_ms(start),
                    error="Could not split script into steps",
                )

            engine = RepairEngine(
                steps,
                session,
                advisor,
                max_tries=self.repair_config.max_tries,
                recent_repairs=self.repair_config.recent_repairs,
                event_log=event_log,
            )
            outcome = await engine.run()
            verdict = await ConfidenceAssessor(advisor).assess(script, outcome)
        finally:
            await close_quietly(session)

        return ExecutionResult(
            run_status=RunStatus.FAILED,
            repair_status=verdict.repair_status,
            repair_confidence=verdict.repair_confidence,
            repair_advice=verdict.repair_advice,
            updated_script=verdict.updated_script,
            num_deflake_runs=exact.num_deflake_runs,
            execution_time=_elapsed_ms(start),
            error=verdict.error,
        )
