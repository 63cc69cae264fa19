"""Script storage backends and managed test discovery."""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, List, Protocol

from mender.src.steps.script_utils import MANAGED_MARKER

logger = logging.getLogger(__name__)

_STEP_MARKER_RE = re.compile(r"^\s*#\s*Step\s*\d+\s*:", re.MULTILINE)
_SKIPPED_DIRS = {".git", ".venv", "venv", "node_modules", "__pycache__", ".pytest_cache"}


class FileHandler(Protocol):
    def resolve_path(self, relative_path: str) -> Path: ...

    def read_test_file(self, file_path: str | Path) -> str: ...

    def write_repaired_test(self, file_path: str | Path, content: str) -> None: ...

    def write_execution_log(self, file_path: str | Path, content: str) -> None: ...

    def file_exists(self, file_path: str | Path) -> bool: ...


class LocalFileHandler:
    """Reads and writes scripts directly on disk."""

    def __init__(self, base_path: str | Path | None = None) -> None:
        self.base_path = Path(base_path) if base_path else Path.cwd()

    def resolve_path(self, relative_path: str) -> Path:
        return (self.base_path / relative_path).resolve()

    def read_test_file(self, file_path: str | Path) -> str:
        return Path(file_path).read_text(encoding="utf-8")

    def write_repaired_test(self, file_path: str | Path, content: str) -> None:
        Path(file_path).write_text(content, encoding="utf-8")
        logger.info("[LocalFileHandler] wrote repaired test %s", file_path)

    def write_execution_log(self, file_path: str | Path, content: str) -> None:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

    def file_exists(self, file_path: str | Path) -> bool:
        return Path(file_path).is_file()


class NoOpFileHandler(LocalFileHandler):
    """Reads from disk but keeps every write in memory."""

    def __init__(self, base_path: str | Path | None = None) -> None:
        super().__init__(base_path)
        self.repaired_files: Dict[str, str] = {}
        self.execution_logs: Dict[str, str] = {}

    def write_repaired_test(self, file_path: str | Path, content: str) -> None:
        self.repaired_files[str(file_path)] = content
        logger.info("[NoOpFileHandler] kept repaired test for %s in memory", file_path)

    def write_execution_log(self, file_path: str | Path, content: str) -> None:
        self.execution_logs[str(file_path)] = content


def is_managed_test_file(path: Path) -> bool:
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.debug("[FileHandler] skipping unreadable %s: %s", path, exc)
        return False
    return MANAGED_MARKER in content or bool(_STEP_MARKER_RE.search(content))


def find_managed_tests(directory: str | Path, recursive: bool = False) -> List[Path]:
    """Python test files under ``directory`` that carry the managed marker or step markers."""
    root = Path(directory)
    if not root.is_dir():
        raise FileNotFoundError(f"Test directory not found: {root}")

    pattern = "**/*.py" if recursive else "*.py"
    found: List[Path] = []
    for path in sorted(root.glob(pattern)):
        if any(part in _SKIPPED_DIRS for part in path.relative_to(root).parts):
            continue
        if not (path.name.startswith("test_") or path.stem.endswith("_test")):
            continue
        if is_managed_test_file(path):
            found.append(path)
    return found
