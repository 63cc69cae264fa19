"""Helpers for building and annotating managed test scripts."""
from __future__ import annotations

import ast
import re
from typing import Iterable, List, Optional

from mender.src.utils.models import Step, StepStatus

MANAGED_MARKER = "This is a Mender Managed Test."

DEFAULT_IMPORTS = [
    "import re",
    "",
    "from playwright.async_api import expect",
]

_ANNOTATION_RE = re.compile(r'^\s*"""[\s\S]*?' + re.escape(MANAGED_MARKER) + r'[\s\S]*?"""')
_TEST_DEF_RE = re.compile(r"^\s*async\s+def\s+(test_\w*)\s*\(", re.MULTILINE)


def managed_comment(repair_advice: Optional[str] = None) -> str:
    """Return the module docstring that marks a script as managed."""
    lines = ['"""', MANAGED_MARKER]
    if repair_advice:
        advice = repair_advice.replace('"""', "'''").strip()
        lines.extend(["", "Repair Advice:", advice])
    lines.append('"""')
    return "\n".join(lines)


def is_managed_test(script: str) -> bool:
    return MANAGED_MARKER in script


def add_managed_comment(script: str, repair_advice: Optional[str] = None) -> str:
    """Prepend the managed annotation, replacing an existing one.

    A script that already carries the marker keeps exactly one annotation.
    """
    comment = managed_comment(repair_advice)
    if _ANNOTATION_RE.search(script):
        if repair_advice is None:
            return script
        return _ANNOTATION_RE.sub(lambda _: comment, script, count=1)
    return f"{comment}\n\n{script.lstrip()}"


def has_executable_code(code: str) -> bool:
    """True when ``code`` holds at least one statement besides comments."""
    if not code or not code.strip():
        return False
    try:
        tree = ast.parse(code)
    except SyntaxError:
        # Let the run report the syntax error instead of hiding the step.
        return any(line.strip() and not line.strip().startswith("#") for line in code.splitlines())
    for node in tree.body:
        if isinstance(node, ast.Pass):
            continue
        if isinstance(node, ast.Expr) and isinstance(node.value, ast.Constant):
            continue
        return True
    return False


def extract_test_name(script: str) -> Optional[str]:
    match = _TEST_DEF_RE.search(script)
    return match.group(1) if match else None


def extract_header(script: str) -> List[str]:
    """Import lines that precede the test function, annotation excluded."""
    body = _ANNOTATION_RE.sub("", script, count=1)
    header: List[str] = []
    for line in body.splitlines():
        stripped = line.strip()
        if _TEST_DEF_RE.match(line) or stripped.startswith("@"):
            break
        if stripped.startswith(("import ", "from ")):
            header.append(line.rstrip())
    return header


def _indent(code: str, prefix: str = "    ") -> Iterable[str]:
    for line in code.splitlines():
        yield f"{prefix}{line}" if line.strip() else ""


def generate_updated_script(steps: List[Step], original: Optional[str] = None) -> str:
    """Candidate script built from the repaired steps, every step's code included.

    Steps that still fail after a partial repair get a ``[FAILED]`` marker,
    which the segmenter strips on the next run.
    """
    test_name = (extract_test_name(original) if original else None) or "test_repaired"
    imports = extract_header(original) if original else []
    lines: List[str] = [managed_comment(), ""]
    lines.extend(imports or DEFAULT_IMPORTS)
    lines.extend(["", "", f"async def {test_name}(page, context, browser):"])
    if not steps:
        lines.append("    pass")
    for number, step in enumerate(steps, start=1):
        suffix = " [FAILED]" if step.status == StepStatus.FAILED else ""
        lines.append(f"    # Step {number}: {step.description}{suffix}")
        lines.extend(_indent(step.code))
    return "\n".join(lines) + "\n"
