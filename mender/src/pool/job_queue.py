"""FIFO job queue with front requeue."""
from __future__ import annotations

from collections import deque
from typing import Deque, Iterator, List, Optional

from mender.src.utils.models import Job


class JobQueue:
    def __init__(self) -> None:
        self._jobs: Deque[Job] = deque()

    def push(self, job: Job) -> None:
        self._jobs.append(job)

    def push_front(self, job: Job) -> None:
        self._jobs.appendleft(job)

    def pop(self) -> Optional[Job]:
        if not self._jobs:
            return None
        return self._jobs.popleft()

    def drain(self) -> List[Job]:
        jobs = list(self._jobs)
        self._jobs.clear()
        return jobs

    def __len__(self) -> int:
        return len(self._jobs)

    def __iter__(self) -> Iterator[Job]:
        return iter(self._jobs)
