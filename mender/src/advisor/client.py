"""OpenAI-backed repair advisor."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol

import openai

from mender.src.advisor import prompts
from mender.src.advisor.parsing import (
    load_json_object,
    parse_confidence,
    parse_repair_suggestion,
    parse_steps,
)
from mender.src.utils.config import CONFIG, AdvisorConfig
from mender.src.utils.errors import AdvisorError
from mender.src.utils.models import ConfidenceAssessment, PageState, RepairSuggestion, Step

logger = logging.getLogger(__name__)


class Advisor(Protocol):
    async def segment_script(self, script: str) -> List[Step]: ...

    async def suggest_repair(
        self,
        description: str,
        code: str,
        error: str,
        page_state: PageState,
        failure_history: str,
        recent_repairs: str,
    ) -> RepairSuggestion: ...

    async def assess_confidence(self, original: str, updated: str) -> ConfidenceAssessment: ...

    async def finalize_script(self, original: str, updated: str, advice: str) -> str: ...


class LLMAdvisor:
    """Advisor that asks a chat model for JSON answers."""

    def __init__(
        self,
        config: Optional[AdvisorConfig] = None,
        *,
        model: Optional[str] = None,
        repair_flexibility: Optional[int] = None,
        client: Any = None,
    ) -> None:
        self.config = config or CONFIG.advisor
        self.model = model or self.config.model
        self.repair_flexibility = (
            self.config.repair_flexibility if repair_flexibility is None else max(0, min(5, repair_flexibility))
        )
        self.client = client or openai.AsyncOpenAI(
            api_key=self.config.api_key,
            base_url=self.config.base_url,
            timeout=float(self.config.request_timeout),
        )

    def with_options(self, *, model: Optional[str] = None, repair_flexibility: Optional[int] = None) -> "LLMAdvisor":
        """Same client, per-request model and flexibility."""
        return LLMAdvisor(
            self.config,
            model=model or self.model,
            repair_flexibility=self.repair_flexibility if repair_flexibility is None else repair_flexibility,
            client=self.client,
        )

    async def _complete_json(self, system: str, user: str) -> Dict[str, Any]:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                temperature=0,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
            )
        except openai.OpenAIError as exc:
            raise AdvisorError(f"Advisor request failed: {exc}") from exc

        response_text = response.choices[0].message.content or ""
        return load_json_object(response_text)

    async def segment_script(self, script: str) -> List[Step]:
        data = await self._complete_json(prompts.SCRIPT_PARSING_SYSTEM, prompts.script_parsing_prompt(script))
        steps = parse_steps(data)
        logger.info("[LLMAdvisor] segmented script into %d steps", len(steps))
        return steps

    async def suggest_repair(
        self,
        description: str,
        code: str,
        error: str,
        page_state: PageState,
        failure_history: str,
        recent_repairs: str,
    ) -> RepairSuggestion:
        prompt = prompts.repair_suggestion_prompt(
            description,
            code,
            error,
            page_state,
            failure_history,
            recent_repairs,
            repair_flexibility=self.repair_flexibility,
        )
        data = await self._complete_json(prompts.REPAIR_SUGGESTION_SYSTEM, prompt)
        return parse_repair_suggestion(data)

    async def assess_confidence(self, original: str, updated: str) -> ConfidenceAssessment:
        data = await self._complete_json(
            prompts.REPAIR_CONFIDENCE_SYSTEM, prompts.repair_confidence_prompt(original, updated)
        )
        return parse_confidence(data)

    async def finalize_script(self, original: str, updated: str, advice: str) -> str:
        data = await self._complete_json(
            prompts.FINAL_SCRIPT_SYSTEM, prompts.final_script_prompt(original, updated, advice)
        )
        return str(data.get("script") or "")
