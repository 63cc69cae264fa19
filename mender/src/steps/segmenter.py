"""Deterministic script segmentation on ``# Step N:`` markers."""
from __future__ import annotations

import logging
import re
import textwrap
from typing import List, Optional

from mender.src.steps.script_utils import has_executable_code
from mender.src.utils.models import Step

logger = logging.getLogger(__name__)

STEP_MARKER_RE = re.compile(r"^#\s*Step\s*\d+\s*:\s*(?P<description>.*?)\s*$")
_FAILED_SUFFIX_RE = re.compile(r"\s*\[FAILED\]\s*$")
_SKIP_PREFIXES = ("import ", "from ", "async def ", "def ", "@")


class StepSegmenter:
    """Fallback splitter used when the advisor cannot segment a script.

    Every ``# Step N: description`` comment opens a step; the lines up to the
    next marker become its code. Steps without executable code are dropped
    and lines before the first marker are ignored.
    """

    def segment(self, script: str) -> List[Step]:
        steps: List[Step] = []
        description: Optional[str] = None
        buffer: List[str] = []

        for line in script.splitlines():
            stripped = line.strip()
            marker = STEP_MARKER_RE.match(stripped)
            if marker:
                self._flush(steps, description, buffer)
                description = _FAILED_SUFFIX_RE.sub("", marker.group("description")).strip()
                buffer = []
                continue
            if not stripped or stripped.startswith(_SKIP_PREFIXES):
                continue
            if description is not None:
                buffer.append(line)

        self._flush(steps, description, buffer)
        logger.debug("[StepSegmenter] parsed %d steps", len(steps))
        return steps

    @staticmethod
    def _flush(steps: List[Step], description: Optional[str], buffer: List[str]) -> None:
        if description is None:
            return
        code = textwrap.dedent("\n".join(buffer)).strip()
        if has_executable_code(code):
            steps.append(Step(description=description, code=code))


def segment_script(script: str) -> List[Step]:
    return StepSegmenter().segment(script)
