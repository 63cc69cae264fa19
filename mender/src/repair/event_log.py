"""
Repair Event Logging

Records step runs and repair decisions for one job as JSON entries.
"""
from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class RepairLog:
    """
    Logs step executions and repair attempts.

    Entry format:
    {
        "action": "repair_attempt",
        "step_number": 2,
        "attempt": 1,
        "operation": "MODIFY",
        "result": "failed",
        "error": "Timeout 5000ms exceeded",
        "timestamp": "2025-10-22T14:00:00Z"
    }
    """

    def __init__(self, log_file: Path | str | None = None):
        self.log_file = Path(log_file) if log_file else None
        self._entries: List[Dict[str, Any]] = []

    def _append(self, entry: Dict[str, Any]) -> None:
        entry["timestamp"] = _now()
        self._entries.append(entry)

    def log_step(self, step_number: int, description: str, result: str, error: Optional[str] = None) -> None:
        entry: Dict[str, Any] = {
            "action": "step",
            "step_number": step_number,
            "description": description,
            "result": result,
        }
        if error:
            entry["error"] = error
        self._append(entry)

    def log_repair_attempt(
        self,
        step_number: int,
        attempt: int,
        operation: Optional[str],
        result: str,
        error: Optional[str] = None,
    ) -> None:
        entry: Dict[str, Any] = {
            "action": "repair_attempt",
            "step_number": step_number,
            "attempt": attempt,
            "operation": operation,
            "result": result,
        }
        if error:
            entry["error"] = error
        self._append(entry)

    def log_advisor_stop(self, step_number: int, reason: str) -> None:
        self._append({"action": "advisor_stop", "step_number": step_number, "reason": reason})

    def log_classification(self, repair_status: str, *, all_steps_successful: bool, repairs: int) -> None:
        self._append(
            {
                "action": "classification",
                "repair_status": repair_status,
                "all_steps_successful": all_steps_successful,
                "repairs": repairs,
            }
        )

    def dumps(self) -> str:
        return json.dumps(self._entries, indent=2, ensure_ascii=False)

    def save(self, path: Path | str | None = None) -> None:
        """Write log entries to file."""
        target = Path(path) if path else self.log_file
        if target is None:
            raise ValueError("No log file configured")
        with target.open("w", encoding="utf-8") as f:
            f.write(self.dumps())

    def get_entries(self) -> List[Dict[str, Any]]:
        return self._entries.copy()

    def get_summary(self) -> Dict[str, Any]:
        """
        Generate summary statistics from the log.

        Returns:
            Dict with counts of steps, attempts and repairs
        """
        if not self._entries:
            return {"total_entries": 0}

        steps = [e for e in self._entries if e.get("action") == "step"]
        attempts = [e for e in self._entries if e.get("action") == "repair_attempt"]

        operations: Dict[str, int] = {}
        for entry in attempts:
            if entry.get("result") == "success" and entry.get("operation"):
                operations[entry["operation"]] = operations.get(entry["operation"], 0) + 1

        classification = next(
            (e for e in reversed(self._entries) if e.get("action") == "classification"), None
        )
        return {
            "total_entries": len(self._entries),
            "steps_run": len(steps),
            "steps_failed": sum(1 for e in steps if e.get("result") == "failed"),
            "repair_attempts": len(attempts),
            "successful_repairs": sum(operations.values()),
            "repairs_by_operation": operations,
            "advisor_stops": sum(1 for e in self._entries if e.get("action") == "advisor_stop"),
            "repair_status": classification.get("repair_status") if classification else None,
        }

    def clear(self) -> None:
        """Clear all log entries."""
        self._entries.clear()
