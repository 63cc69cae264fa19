import json
from types import SimpleNamespace

import openai
import pytest

from fakes import run
from mender.src.advisor.client import LLMAdvisor
from mender.src.advisor.parsing import (
    load_json_object,
    parse_confidence,
    parse_repair_suggestion,
    parse_steps,
    strip_code_fences,
    to_snake_keys,
)
from mender.src.advisor.prompts import repair_suggestion_prompt
from mender.src.utils.config import AdvisorConfig
from mender.src.utils.errors import AdvisorError
from mender.src.utils.models import InsertStep, ModifyStep, PageState, RemoveStep


class FakeCompletions:
    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        content = reply if isinstance(reply, str) else json.dumps(reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _advisor(*replies, **options):
    completions = FakeCompletions(replies)
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return LLMAdvisor(AdvisorConfig(api_key="test-key", model="test-model"), client=client, **options), completions


class TestParsing:
    def test_strip_code_fences(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_code_fences("```\n{}\n```") == "{}"
        assert strip_code_fences('  {"a": 1} ') == '{"a": 1}'

    @pytest.mark.parametrize("text", ["", "not json", "[1, 2]"])
    def test_load_json_object_rejects_bad_payloads(self, text):
        with pytest.raises(AdvisorError):
            load_json_object(text)

    def test_to_snake_keys_is_recursive(self):
        converted = to_snake_keys({"shouldContinue": True, "action": {"newStep": {"code": "x"}}})

        assert converted == {"should_continue": True, "action": {"new_step": {"code": "x"}}}

    def test_parse_steps_skips_entries_without_code(self):
        steps = parse_steps(
            {"steps": [{"description": "Open", "code": "await page.goto('/')"}, {"description": "Empty"}, "junk"]}
        )

        assert len(steps) == 1
        assert steps[0].description == "Open"

    def test_parse_steps_requires_steps_array(self):
        with pytest.raises(AdvisorError):
            parse_steps({"result": []})

    @pytest.mark.parametrize(
        "operation, expected_type",
        [("MODIFY", ModifyStep), ("insert", InsertStep), ("Remove", RemoveStep)],
    )
    def test_parse_repair_suggestion_operations(self, operation, expected_type):
        data = {
            "shouldContinue": True,
            "reason": "selector changed",
            "action": {"operation": operation, "newStep": {"description": "Click", "code": "await page.click('#a')"}},
        }

        suggestion = parse_repair_suggestion(data)

        assert isinstance(suggestion.action, expected_type)
        assert suggestion.reason == "selector changed"

    def test_parse_stop_suggestion_without_action(self):
        suggestion = parse_repair_suggestion({"shouldContinue": False, "reason": "page is gone", "action": {}})

        assert suggestion.should_continue is False
        assert suggestion.action is None

    def test_parse_invalid_suggestion(self):
        with pytest.raises(AdvisorError):
            parse_repair_suggestion({"action": {"operation": "MODIFY"}})

    @pytest.mark.parametrize("raw, expected", [(7, 5), (-2, 0), ("3", 3), ("high", 0)])
    def test_parse_confidence_clamps(self, raw, expected):
        assert parse_confidence({"confidence": raw, "advice": "ok"}).confidence == expected


def test_repair_prompt_includes_page_state_and_flexibility():
    prompt = repair_suggestion_prompt(
        "Click login",
        "await page.click('#login')",
        "Timeout 5000ms exceeded",
        PageState(url="https://example.com", title="Example", interactive_elements="button: Sign in"),
        "Original failure: Timeout 5000ms exceeded",
        "No recent repairs to consider.",
        repair_flexibility=1,
    )

    assert "Interactive Elements: button: Sign in" in prompt
    assert "Repair flexibility: 1" in prompt
    assert "Original failure: Timeout 5000ms exceeded" in prompt


class TestLLMAdvisor:
    def test_segment_script(self):
        advisor, completions = _advisor({"steps": [{"description": "Go", "code": "await page.goto('/')"}]})

        steps = run(advisor.segment_script("async def test_x(page): ..."))

        assert [s.description for s in steps] == ["Go"]
        call = completions.calls[0]
        assert call["model"] == "test-model"
        assert call["response_format"] == {"type": "json_object"}
        assert call["messages"][0]["role"] == "system"

    def test_suggest_repair_accepts_fenced_reply(self):
        reply = '```json\n{"shouldContinue": true, "reason": "r", "action": {"operation": "REMOVE"}}\n```'
        advisor, _ = _advisor(reply)

        suggestion = run(advisor.suggest_repair("d", "c", "e", PageState(), "history", "recent"))

        assert isinstance(suggestion.action, RemoveStep)

    def test_assess_and_finalize(self):
        advisor, _ = _advisor({"confidence": 4, "advice": "Updated selector."}, {"script": "final script"})

        assessment = run(advisor.assess_confidence("old", "new"))
        final = run(advisor.finalize_script("old", "new", assessment.advice))

        assert assessment.confidence == 4
        assert final == "final script"

    def test_sdk_errors_become_advisor_errors(self):
        advisor, _ = _advisor(openai.OpenAIError("service unavailable"))

        with pytest.raises(AdvisorError, match="service unavailable"):
            run(advisor.assess_confidence("old", "new"))

    def test_with_options_shares_client(self):
        advisor, completions = _advisor({"confidence": 2, "advice": ""})

        tuned = advisor.with_options(model="other-model", repair_flexibility=9)
        run(tuned.assess_confidence("a", "b"))

        assert tuned.client is advisor.client
        assert tuned.repair_flexibility == 5
        assert completions.calls[0]["model"] == "other-model"

    def test_with_options_keeps_defaults(self):
        advisor, _ = _advisor(repair_flexibility=1)

        tuned = advisor.with_options()

        assert tuned.model == "test-model"
        assert tuned.repair_flexibility == 1
