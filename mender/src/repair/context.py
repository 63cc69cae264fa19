"""Per-job execution state and repair history buffers."""
from __future__ import annotations

from collections import deque
from typing import Any, Deque, Dict, Iterable, List, Optional

from mender.src.utils.models import RecentRepairEntry, RepairAttemptRecord


class ExecutionContext:
    """Namespace shared by the steps of one job plus the code that ran."""

    def __init__(self) -> None:
        self.namespace: Dict[str, Any] = {"__name__": "mender_steps"}
        self.transcript: List[str] = []

    def record(self, code: str) -> None:
        self.transcript.append(code)

    def script(self) -> str:
        return "\n".join(self.transcript)


class RecentRepairs:
    def __init__(self, maxlen: int = 3) -> None:
        self._buf: Deque[RecentRepairEntry] = deque(maxlen=maxlen)

    def add(self, entry: RecentRepairEntry) -> None:
        self._buf.append(entry)

    def __iter__(self):
        return iter(self._buf)

    def __len__(self) -> int:
        return len(self._buf)

    def render(self) -> str:
        if not self._buf:
            return "No recent repairs to consider."
        lines = ["Recent successful repairs that may affect this step:"]
        for entry in self._buf:
            lines.append(f"- Step {entry.step_number}: {entry.operation}")
            if entry.before is not None:
                lines.append(f'  Original: "{entry.before.description}" -> {entry.before.code}')
            if entry.after is not None:
                lines.append(f'  New: "{entry.after.description}" -> {entry.after.code}')
        lines.append("")
        lines.append("Consider how these changes might affect the current step and adjust accordingly.")
        return "\n".join(lines)


class AttemptHistory:
    """Failed repair attempts for the step currently being repaired."""

    def __init__(self, maxlen: int = 3) -> None:
        self._buf: Deque[RepairAttemptRecord] = deque(maxlen=maxlen)

    def add(self, record: RepairAttemptRecord) -> None:
        self._buf.append(record)

    def __len__(self) -> int:
        return len(self._buf)

    def render(self, original_error: Optional[str]) -> str:
        return build_failure_history(original_error, self._buf)


def build_failure_history(original_error: Optional[str], records: Iterable[RepairAttemptRecord]) -> str:
    lines = [f"Original failure: {original_error or 'Unknown error'}"]
    records = list(records)
    if records:
        lines.append("")
        lines.append("Previous repair attempts:")
        for record in records:
            action = record.action
            lines.append(f"Attempt {record.attempt_number}:")
            lines.append(f"  Operation: {action.operation if action else 'NONE'}")
            new_step = getattr(action, "new_step", None)
            if new_step is not None:
                lines.append(f"  Description: {new_step.description}")
                lines.append(f"  Code: {new_step.code}")
            lines.append(f"  Error: {record.error}")
    return "\n".join(lines)
