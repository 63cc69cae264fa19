"""Confidence assessment and final script assembly after a repair run."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from mender.src.advisor.client import Advisor
from mender.src.repair.engine import RepairOutcome
from mender.src.steps.script_utils import add_managed_comment, generate_updated_script
from mender.src.utils.models import ConfidenceAssessment, RepairStatus

logger = logging.getLogger(__name__)

NO_REPAIR_ADVICE = "AI repair could not fix any steps"
FLAKY_ADVICE = (
    "All steps passed when run one by one, so no repair was needed. "
    "The original failure looks flaky; consider raising deflake runs."
)


@dataclass(slots=True)
class RepairVerdict:
    repair_status: RepairStatus
    repair_confidence: Optional[int]
    repair_advice: str
    updated_script: str
    error: Optional[str] = None


class ConfidenceAssessor:
    def __init__(self, advisor: Advisor) -> None:
        self.advisor = advisor

    async def assess(self, original_script: str, outcome: RepairOutcome) -> RepairVerdict:
        if outcome.all_steps_successful and not outcome.has_successful_repairs:
            return RepairVerdict(
                repair_status=RepairStatus.SUCCESS,
                repair_confidence=None,
                repair_advice=FLAKY_ADVICE,
                updated_script=original_script,
            )

        if not outcome.has_successful_repairs:
            return RepairVerdict(
                repair_status=RepairStatus.FAILED,
                repair_confidence=0,
                repair_advice=NO_REPAIR_ADVICE,
                updated_script=original_script,
                error=outcome.last_error or outcome.stop_reason or NO_REPAIR_ADVICE,
            )

        candidate = generate_updated_script(outcome.steps, original_script)
        try:
            assessment = await self.advisor.assess_confidence(original_script, candidate)
        except Exception as exc:
            logger.warning("[ConfidenceAssessor] confidence assessment failed: %s", exc)
            assessment = ConfidenceAssessment(
                confidence=0, advice=f"Repairs were applied but could not be assessed: {exc}"
            )

        final_script = ""
        try:
            final_script = await self.advisor.finalize_script(original_script, candidate, assessment.advice)
        except Exception as exc:
            logger.warning("[ConfidenceAssessor] final script generation failed, using candidate: %s", exc)
        if not final_script or not final_script.strip():
            final_script = candidate

        return RepairVerdict(
            repair_status=outcome.repair_status,
            repair_confidence=assessment.confidence,
            repair_advice=assessment.advice,
            updated_script=add_managed_comment(final_script, assessment.advice),
            error=None if outcome.all_steps_successful else outcome.last_error,
        )
