"""Runs script files through the worker pool and stores the repairs."""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Sequence

from mender.src.files.file_handler import FileHandler, LocalFileHandler
from mender.src.pool.pool import WorkerPool
from mender.src.pool.worker import ScriptJob
from mender.src.report import ScriptOutcome
from mender.src.utils.errors import ScriptInputError
from mender.src.utils.models import ExecutionResult, RepairStatus, ScriptExecutionRequest

logger = logging.getLogger(__name__)


class RunnerService:
    def __init__(
        self,
        pool: WorkerPool,
        file_handler: Optional[FileHandler] = None,
        *,
        logs_dir: str | Path | None = None,
        write_repairs: bool = True,
    ) -> None:
        self.pool = pool
        self.file_handler = file_handler or LocalFileHandler()
        self.logs_dir = Path(logs_dir) if logs_dir else None
        self.write_repairs = write_repairs

    def resolve_request(self, request: ScriptExecutionRequest) -> ScriptExecutionRequest:
        """Fill ``script`` from ``script_path`` when only a path was given."""
        if request.script and request.script.strip():
            return request
        if not request.script_path:
            raise ScriptInputError("Either script or script_path is required")

        path = self.file_handler.resolve_path(request.script_path)
        if not self.file_handler.file_exists(path):
            raise ScriptInputError(f"Test file not found: {path}")
        script = self.file_handler.read_test_file(path)
        if not script.strip():
            raise ScriptInputError(f"Test file is empty: {path}")
        return request.model_copy(update={"script": script, "script_path": str(path)})

    async def run_request(self, request: ScriptExecutionRequest) -> ExecutionResult:
        request = self.resolve_request(request)
        job = ScriptJob(request)
        result: ExecutionResult = await self.pool.submit(job)

        if (
            self.write_repairs
            and request.script_path
            and result.repair_status == RepairStatus.SUCCESS
            and result.updated_script
            and result.updated_script != request.script
        ):
            self.file_handler.write_repaired_test(request.script_path, result.updated_script)

        if self.logs_dir is not None:
            name = Path(request.script_path).stem if request.script_path else "script"
            self.file_handler.write_execution_log(self.logs_dir / f"{name}.log.json", job.event_log.dumps())
        return result

    async def run_files(
        self,
        paths: Sequence[str | Path],
        template: Optional[ScriptExecutionRequest] = None,
    ) -> List[ScriptOutcome]:
        template = template or ScriptExecutionRequest()
        requests = [template.model_copy(update={"script": None, "script_path": str(path)}) for path in paths]
        results = await asyncio.gather(*(self.run_request(req) for req in requests), return_exceptions=True)

        outcomes: List[ScriptOutcome] = []
        for path, result in zip(paths, results):
            if isinstance(result, BaseException):
                logger.error("[RunnerService] %s failed: %s", path, result)
                outcomes.append(ScriptOutcome(test_file=str(path), result=None, error=str(result)))
            else:
                outcomes.append(ScriptOutcome(test_file=str(path), result=result))
        return outcomes
