"""Success criteria and run summaries."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence

from mender.src.utils.models import ExecutionResult, RepairStatus, RunStatus


class SuccessCriteria(str, Enum):
    ORIGINAL_SUCCESS = "ORIGINAL_SUCCESS"
    REPAIR_SUCCESS_WITH_CONFIDENCE = "REPAIR_SUCCESS_WITH_CONFIDENCE"


DEFAULT_CONFIDENCE_THRESHOLD = 4


@dataclass(slots=True)
class ScriptOutcome:
    test_file: str
    result: Optional[ExecutionResult]
    error: Optional[str] = None


def is_flaky(result: Optional[ExecutionResult]) -> bool:
    """Steps passed one by one, so nothing was repaired or scored."""
    return (
        result is not None
        and result.repair_status == RepairStatus.SUCCESS
        and result.repair_confidence is None
    )


def is_successful(
    result: Optional[ExecutionResult],
    criteria: SuccessCriteria = SuccessCriteria.ORIGINAL_SUCCESS,
    threshold: int = DEFAULT_CONFIDENCE_THRESHOLD,
) -> bool:
    if result is None:
        return False
    if result.run_status == RunStatus.SUCCESS:
        return True
    return (
        criteria == SuccessCriteria.REPAIR_SUCCESS_WITH_CONFIDENCE
        and not is_flaky(result)
        and result.repair_status == RepairStatus.SUCCESS
        and (result.repair_confidence or 0) >= threshold
    )


def describe_outcome(outcome: ScriptOutcome, criteria: SuccessCriteria, threshold: int) -> str:
    result = outcome.result
    if result is None:
        return f"ERROR: {outcome.error or 'no result'}"
    if result.run_status == RunStatus.SUCCESS:
        return f"PASSED (deflake runs: {result.num_deflake_runs})"
    if is_flaky(result):
        return f"FLAKY: {result.repair_advice}"
    if is_successful(result, criteria, threshold):
        return f"REPAIRED (confidence {result.repair_confidence})"
    if result.repair_status in (RepairStatus.SUCCESS, RepairStatus.PARTIAL):
        confidence = result.repair_confidence or 0
        if confidence < threshold:
            return f"REPAIR REJECTED: confidence {confidence} < threshold {threshold}"
        return f"REPAIR REJECTED: {result.repair_status.value} repair does not meet {criteria.value}"
    return f"FAILED: {result.error or result.repair_advice or 'no repair available'}"


def build_summary(
    outcomes: Sequence[ScriptOutcome],
    criteria: SuccessCriteria = SuccessCriteria.ORIGINAL_SUCCESS,
    threshold: int = DEFAULT_CONFIDENCE_THRESHOLD,
) -> Dict[str, object]:
    """Return counts for a batch of runs plus a per-test breakdown."""

    success_count = 0
    repaired: List[ScriptOutcome] = []
    above = 0
    tests: List[Dict[str, object]] = []

    for outcome in outcomes:
        result = outcome.result
        passed = is_successful(result, criteria, threshold)
        if passed:
            success_count += 1
        repaired_run = result is not None and result.repair_status in (RepairStatus.SUCCESS, RepairStatus.PARTIAL)
        if repaired_run and not is_flaky(result):
            repaired.append(outcome)
            if (result.repair_confidence or 0) >= threshold:
                above += 1
        tests.append(
            {
                "test_file": outcome.test_file,
                "successful": passed,
                "detail": describe_outcome(outcome, criteria, threshold),
                "result": result.model_dump(mode="json") if result is not None else None,
            }
        )

    failure_count = len(outcomes) - success_count
    return {
        "status": "success" if failure_count == 0 else "failed",
        "test_count": len(outcomes),
        "success_count": success_count,
        "failure_count": failure_count,
        "repaired_count": len(repaired),
        "repaired_above_threshold": above,
        "repaired_below_threshold": len(repaired) - above,
        "success_criteria": criteria.value,
        "confidence_threshold": threshold,
        "tests": tests,
    }
