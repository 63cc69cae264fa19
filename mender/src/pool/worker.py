"""Pool worker that owns one browser driver."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from mender.src.advisor.client import Advisor, LLMAdvisor
from mender.src.browser.session import BrowserDriver, PlaywrightDriver
from mender.src.repair.event_log import RepairLog
from mender.src.repair.runner import RunController
from mender.src.utils.config import CONFIG, AppConfig
from mender.src.utils.models import ExecutionResult, ScriptExecutionRequest

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ScriptJob:
    """Request plus the event log its run should write to."""

    request: ScriptExecutionRequest
    event_log: RepairLog = field(default_factory=RepairLog)


class PoolWorker(Protocol):
    id: int
    busy: bool

    async def start(self) -> None: ...

    async def process(self, payload: Any) -> Any: ...

    async def cleanup(self) -> None: ...


class ScriptWorker:
    """Runs one script request at a time on its own browser."""

    def __init__(
        self,
        worker_id: int,
        *,
        driver: Optional[BrowserDriver] = None,
        advisor: Optional[Advisor] = None,
        config: Optional[AppConfig] = None,
    ) -> None:
        self.id = worker_id
        self.busy = False
        self.config = config or CONFIG
        self.driver = driver or PlaywrightDriver(self.config.browser)
        self.advisor = advisor or LLMAdvisor(self.config.advisor)
        self.controller = RunController(
            self.driver,
            self.advisor,
            browser_config=self.config.browser,
            repair_config=self.config.repair,
        )

    async def start(self) -> None:
        await self.driver.start()
        logger.info("[ScriptWorker %d] ready", self.id)

    async def process(self, payload: ScriptJob | ScriptExecutionRequest) -> ExecutionResult:
        if isinstance(payload, ScriptJob):
            return await self.controller.execute(payload.request, event_log=payload.event_log)
        return await self.controller.execute(payload)

    async def cleanup(self) -> None:
        await self.driver.stop()
        logger.info("[ScriptWorker %d] stopped", self.id)
