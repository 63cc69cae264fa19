"""Parsing helpers for advisor JSON payloads."""
from __future__ import annotations

import json
import re
from typing import Any, Dict, List

from pydantic import ValidationError

from mender.src.utils.errors import AdvisorError
from mender.src.utils.models import ConfidenceAssessment, RepairSuggestion, Step

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def strip_code_fences(text: str) -> str:
    cleaned = (text or "").strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def load_json_object(text: str) -> Dict[str, Any]:
    cleaned = strip_code_fences(text)
    if not cleaned:
        raise AdvisorError("Advisor returned an empty response")
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise AdvisorError(f"Advisor returned non-JSON: {cleaned[:200]}") from exc
    if not isinstance(parsed, dict):
        raise AdvisorError(f"Advisor returned {type(parsed).__name__}, expected an object: {cleaned[:200]}")
    return parsed


def to_snake_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {_CAMEL_RE.sub("_", str(key)).lower(): to_snake_keys(item) for key, item in value.items()}
    if isinstance(value, list):
        return [to_snake_keys(item) for item in value]
    return value


def parse_steps(data: Dict[str, Any]) -> List[Step]:
    raw_steps = data.get("steps")
    if not isinstance(raw_steps, list):
        raise AdvisorError("Advisor response has no steps array")
    steps: List[Step] = []
    for item in raw_steps:
        if not isinstance(item, dict):
            continue
        description = str(item.get("description") or "").strip()
        code = str(item.get("code") or "").strip()
        if code:
            steps.append(Step(description=description or f"Step {len(steps) + 1}", code=code))
    return steps


def parse_repair_suggestion(data: Dict[str, Any]) -> RepairSuggestion:
    payload = to_snake_keys(data)
    action = payload.get("action")
    if isinstance(action, dict) and isinstance(action.get("operation"), str):
        action["operation"] = action["operation"].strip().upper()
    if isinstance(action, dict) and not action.get("operation"):
        payload["action"] = None
    try:
        return RepairSuggestion.model_validate(payload)
    except ValidationError as exc:
        raise AdvisorError(f"Invalid repair suggestion: {exc.errors()[:1]}") from exc


def parse_confidence(data: Dict[str, Any]) -> ConfidenceAssessment:
    try:
        confidence = int(data.get("confidence", 0))
    except (TypeError, ValueError):
        confidence = 0
    return ConfidenceAssessment(
        confidence=max(0, min(5, confidence)),
        advice=str(data.get("advice") or ""),
    )
