"""Prompt templates for the repair advisor."""
from __future__ import annotations

from mender.src.utils.models import PageState

SCRIPT_PARSING_SYSTEM = (
    "You are an expert at parsing async Python Playwright test scripts into logical steps. "
    "IGNORE the module docstring at the top of the script; it holds repair advice, not test steps. "
    'ALWAYS prefer existing "# Step N:" comments as step boundaries and keep their descriptions exactly. '
    "Only write new descriptions when no step comments exist. Preserve code exactly."
)

REPAIR_SUGGESTION_SYSTEM = (
    "You are an expert test automation engineer who fixes failing Playwright tests written with the "
    "Python async API. Use the page state, the error and the step description to pick the best repair "
    "action, and use the failure history to avoid repeating mistakes."
)

REPAIR_CONFIDENCE_SYSTEM = (
    "You are an expert test automation engineer who writes concise repair advice that builds a running "
    "understanding of a test's behaviour and the repairs made to it."
)

FINAL_SCRIPT_SYSTEM = (
    "You create drop-in replacement test scripts. Produce a complete, well formatted Python module that "
    "keeps the original structure while carrying the repairs and the new advice."
)


def script_parsing_prompt(script: str) -> str:
    return f"""Parse this async Python Playwright test into logical steps. Be conservative and keep the exact code.

Instructions:
1. Ignore the module docstring at the top; it is repair advice.
2. Use existing "# Step N:" comments as step boundaries and keep their text.
3. Without step comments, group commands that belong together (navigation + wait, form filling, verification).
4. Keep every line of code as written, without the surrounding function definition or its indentation.
5. Keep steps focused but not too granular.

Script:
{script}

Return a JSON object:
{{
  "steps": [
    {{"description": "existing comment text or a meaningful description", "code": "exact code from the script"}}
  ]
}}"""


def repair_suggestion_prompt(
    description: str,
    code: str,
    error: str,
    page_state: PageState,
    failure_history: str,
    recent_repairs: str,
    repair_flexibility: int = 3,
) -> str:
    return f"""Analyze this failing Playwright step and suggest a repair action.

Current Step:
Description: {description}
Code: {code}
Error: {error}

Current Page State:
- URL: {page_state.url}
- Title: {page_state.title}
- Interactive Elements: {page_state.interactive_elements}
- Form Fields: {page_state.form_fields}
- Page Structure: {page_state.page_structure}

{failure_history}

{recent_repairs}

Repair flexibility: {repair_flexibility} (0 = smallest possible change, 5 = free to restructure the step)

Choose the best repair action:
1. MODIFY - fix the current step with better locators, waits or logic
2. INSERT - add a new step before the current one (wait for an element, dismiss a dialog, scroll)
3. REMOVE - skip this step if it is not essential

Code runs inside an async function with `page`, `context`, `browser`, `expect` and `re` in scope,
so use `await page.get_by_role("button", name="Submit").click()` style calls.

Respond with JSON:
{{
  "shouldContinue": true,
  "reason": "explanation of the decision",
  "action": {{
    "operation": "MODIFY|INSERT|REMOVE",
    "newStep": {{
      "description": "step description",
      "code": "await page.get_by_role(\\"button\\", name=\\"Submit\\").click()"
    }}
  }}
}}"""


def repair_confidence_prompt(original_script: str, updated_script: str) -> str:
    return f"""Write short repair advice that builds a running understanding of this test.

Original Script:
{original_script}

Repaired Script:
{updated_script}

Instructions:
1. Compare the scripts and identify what was fixed.
2. Rate confidence from 0 (repairs may be unreliable) to 5 (repairs are solid and maintainable).
3. Keep the advice to a few short sentences: the specific fix, patterns worth remembering, and any
   earlier repair advice found in the original script.

Step comments are expected; do not mention them as issues.

Respond with JSON:
{{
  "confidence": 0,
  "advice": "short factual statement about the fix and the test's patterns"
}}"""


def final_script_prompt(original_script: str, updated_script: str, new_repair_advice: str) -> str:
    return f"""Create a final script that can replace the original file as is.

Original Script (with any existing repair advice):
{original_script}

Updated Script (with repairs):
{updated_script}

New Repair Advice:
{new_repair_advice}

Instructions:
1. Keep the original test function name, imports and overall structure.
2. Use the repaired code from the updated script, with "# Step N:" comments.
3. Put one module docstring at the top marking the file as a Mender Managed Test, with a
   "Repair Advice:" section combining earlier advice and the new advice.
4. Return a complete, runnable Python module.

Return a JSON object:
{{
  "script": "complete final script"
}}"""
