"""Bounded asyncio worker pool."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Set, Tuple, Type

from mender.src.pool.job_queue import JobQueue
from mender.src.pool.worker import PoolWorker, ScriptWorker
from mender.src.utils.config import CONFIG
from mender.src.utils.errors import PoolClosedError, ScriptInputError
from mender.src.utils.models import Job

logger = logging.getLogger(__name__)

JOB_COMPLETE = "job_complete"
JOB_ERROR = "job_error"


class WorkerPool:
    """Dispatches queued jobs to a fixed set of workers.

    Each worker handles one job at a time. Jobs run in FIFO order; a job whose
    processing raises is put back at the front of the queue once, and a second
    failure fails its future.
    """

    def __init__(
        self,
        max_workers: Optional[int] = None,
        worker_factory: Optional[Callable[[int], PoolWorker]] = None,
        *,
        max_requeues: int = 1,
        non_retryable: Tuple[Type[BaseException], ...] = (ScriptInputError,),
    ) -> None:
        self.max_workers = max(1, max_workers or CONFIG.pool.max_workers)
        self.worker_factory = worker_factory or (lambda worker_id: ScriptWorker(worker_id))
        self.max_requeues = max_requeues
        self.non_retryable = non_retryable
        self.workers: List[PoolWorker] = []
        self.queue = JobQueue()
        self.in_flight = 0
        self.max_in_flight = 0
        self._listeners: Dict[str, List[Callable[..., Any]]] = {JOB_COMPLETE: [], JOB_ERROR: []}
        self._futures: Dict[str, asyncio.Future] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._started = False
        self._closed = False

    async def start(self) -> None:
        if self._started:
            return
        if self._closed:
            raise PoolClosedError("Worker pool is shut down")
        workers = [self.worker_factory(worker_id) for worker_id in range(1, self.max_workers + 1)]
        await asyncio.gather(*(worker.start() for worker in workers))
        self.workers = workers
        self._started = True
        logger.info("[WorkerPool] started %d workers", len(workers))
        self._dispatch()

    def on(self, event: str, callback: Callable[..., Any]) -> None:
        if event not in self._listeners:
            raise ValueError(f"Unknown pool event: {event}")
        self._listeners[event].append(callback)

    def _emit(self, event: str, *args: Any) -> None:
        for callback in self._listeners[event]:
            try:
                callback(*args)
            except Exception as exc:
                logger.warning("[WorkerPool] %s listener failed: %s", event, exc)

    def submit(self, payload: Any) -> asyncio.Future:
        """Queue ``payload`` and return a future for its result."""
        if self._closed:
            raise PoolClosedError("Worker pool is shut down")
        job = Job(payload=payload)
        future = asyncio.get_running_loop().create_future()
        self._futures[job.id] = future
        self.queue.push(job)
        logger.debug("[WorkerPool] queued job %s (queue=%d)", job.id, len(self.queue))
        self._dispatch()
        return future

    def _idle_worker(self) -> Optional[PoolWorker]:
        for worker in self.workers:
            if not worker.busy:
                return worker
        return None

    def _dispatch(self) -> None:
        while len(self.queue) and not self._closed:
            worker = self._idle_worker()
            if worker is None:
                return
            job = self.queue.pop()
            if job is None:
                return
            worker.busy = True
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            task = asyncio.get_running_loop().create_task(self._process(worker, job))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _process(self, worker: PoolWorker, job: Job) -> None:
        future = self._futures[job.id]
        try:
            result = await worker.process(job.payload)
        except Exception as exc:
            logger.warning("[WorkerPool] job %s failed on worker %s: %s", job.id, worker.id, exc)
            self._emit(JOB_ERROR, job.id, exc)
            # The queue is already drained once shutdown starts.
            if (
                not self._closed
                and job.requeue_count < self.max_requeues
                and not isinstance(exc, self.non_retryable)
            ):
                job.requeue_count += 1
                self.queue.push_front(job)
            else:
                self._futures.pop(job.id, None)
                if not future.done():
                    future.set_exception(exc)
        else:
            self._futures.pop(job.id, None)
            if not future.done():
                future.set_result(result)
            self._emit(JOB_COMPLETE, job.id, result)
        finally:
            worker.busy = False
            self.in_flight -= 1
            self._dispatch()

    async def join(self) -> None:
        """Wait until every submitted job has a result or an error."""
        while self._futures:
            await asyncio.gather(*list(self._futures.values()), return_exceptions=True)

    async def shutdown(self) -> None:
        if self._closed:
            return
        self._closed = True
        for job in self.queue.drain():
            future = self._futures.pop(job.id, None)
            if future is not None and not future.done():
                future.set_exception(PoolClosedError("Worker pool shut down before the job ran"))
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

        results = await asyncio.gather(*(worker.cleanup() for worker in self.workers), return_exceptions=True)
        for worker, result in zip(self.workers, results):
            if isinstance(result, Exception):
                logger.warning("[WorkerPool] cleanup of worker %s failed: %s", worker.id, result)
        self.workers = []
        logger.info("[WorkerPool] shut down")

    async def __aenter__(self) -> "WorkerPool":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.shutdown()
