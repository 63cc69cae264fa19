"""Repair advisor backed by a chat model."""
from mender.src.advisor.client import Advisor, LLMAdvisor
from mender.src.advisor.parsing import load_json_object, parse_repair_suggestion, strip_code_fences

__all__ = [
    "Advisor",
    "LLMAdvisor",
    "load_json_object",
    "parse_repair_suggestion",
    "strip_code_fences",
]
