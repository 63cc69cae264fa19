"""Run step fragments and whole scripts against a Playwright page."""
from __future__ import annotations

import ast
import asyncio
import inspect
import re
from typing import Any, Callable, Dict, Optional

from playwright.async_api import expect

from mender.src.steps.script_utils import has_executable_code
from mender.src.utils.errors import StepExecutionError

EMPTY_STEP_ERROR = "Step code is empty or contains only comments"
NO_TEST_FUNCTION_ERROR = "Could not extract test function from script"
_BINDABLE = ("page", "context", "browser")


def describe_error(exc: BaseException) -> str:
    message = str(exc).strip()
    return message or exc.__class__.__name__


def seed_namespace(namespace: Dict[str, Any], *, page: Any, context: Any = None, browser: Any = None) -> Dict[str, Any]:
    namespace.update({"page": page, "context": context, "browser": browser})
    namespace.setdefault("expect", expect)
    namespace.setdefault("re", re)
    namespace.setdefault("asyncio", asyncio)
    return namespace


class StepProgram:
    """A step's code compiled once with top-level ``await`` allowed."""

    def __init__(self, source: str) -> None:
        self.source = source
        self._code = compile(source, "<step>", "exec", flags=ast.PyCF_ALLOW_TOP_LEVEL_AWAIT)

    @classmethod
    def compile(cls, source: str) -> "StepProgram":
        if not has_executable_code(source):
            raise StepExecutionError(EMPTY_STEP_ERROR)
        try:
            return cls(source)
        except SyntaxError as exc:
            raise StepExecutionError(f"SyntaxError: {exc.msg} (line {exc.lineno})") from exc

    async def run(self, namespace: Dict[str, Any]) -> None:
        result = eval(self._code, namespace)  # noqa: S307
        if inspect.iscoroutine(result):
            await result


async def execute_step(
    page: Any,
    code: str,
    namespace: Dict[str, Any],
    *,
    step_timeout_ms: int,
    default_timeout_ms: int,
    hard_timeout: Optional[float] = None,
) -> None:
    """Run one step, then restore the page's default timeout whatever happens."""
    program = StepProgram.compile(code)
    page.set_default_timeout(step_timeout_ms)
    try:
        await asyncio.wait_for(program.run(namespace), timeout=hard_timeout)
    except asyncio.TimeoutError as exc:
        raise StepExecutionError(f"Step timed out after {hard_timeout}s") from exc
    except StepExecutionError:
        raise
    except Exception as exc:
        raise StepExecutionError(describe_error(exc)) from exc
    finally:
        page.set_default_timeout(default_timeout_ms)


def find_test_function(namespace: Dict[str, Any]) -> Optional[Callable[..., Any]]:
    """First ``async def test_*`` defined by the script, else the first async function taking ``page``."""
    module_name = namespace.get("__name__")
    candidates = [
        value
        for value in namespace.values()
        if inspect.iscoroutinefunction(value) and getattr(value, "__module__", None) == module_name
    ]
    for fn in candidates:
        if fn.__name__.startswith("test"):
            return fn
    for fn in candidates:
        if "page" in inspect.signature(fn).parameters:
            return fn
    return None


async def run_script(script: str, *, page: Any, context: Any = None, browser: Any = None) -> None:
    namespace: Dict[str, Any] = {"__name__": "mender_script"}
    try:
        code = compile(script, "<script>", "exec")
    except SyntaxError as exc:
        raise StepExecutionError(f"SyntaxError: {exc.msg} (line {exc.lineno})") from exc

    try:
        exec(code, namespace)  # noqa: S102
    except Exception as exc:
        raise StepExecutionError(describe_error(exc)) from exc

    test_fn = find_test_function(namespace)
    if test_fn is None:
        raise StepExecutionError(NO_TEST_FUNCTION_ERROR)

    available = {"page": page, "context": context, "browser": browser}
    kwargs = {
        name: available[name]
        for name, param in inspect.signature(test_fn).parameters.items()
        if name in _BINDABLE and param.kind is not inspect.Parameter.VAR_KEYWORD
    }
    try:
        await test_fn(**kwargs)
    except Exception as exc:
        raise StepExecutionError(describe_error(exc)) from exc
