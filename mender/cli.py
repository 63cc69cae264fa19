"""Console entry point for Mender."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Sequence

from dotenv import load_dotenv

# Settings are read from the environment at import time.
load_dotenv()

from mender.src.files.file_handler import LocalFileHandler, NoOpFileHandler, find_managed_tests
from mender.src.pool.pool import JOB_ERROR, WorkerPool
from mender.src.pool.worker import ScriptWorker
from mender.src.report import DEFAULT_CONFIDENCE_THRESHOLD, SuccessCriteria, build_summary
from mender.src.service import RunnerService
from mender.src.utils.config import CONFIG, AppConfig, BrowserConfig
from mender.src.utils.models import ExecutionMode, ScriptExecutionRequest

logger = logging.getLogger("mender.cli")

DEFAULT_OUTPUT = "mender-outputs.json"


def _configure_logging() -> None:
    level = (os.getenv("MENDER_LOG_LEVEL", "INFO") or "INFO").upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format="%(levelname)s %(name)s: %(message)s")


def _build_run_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mender run", description="Run managed Playwright tests and repair failures.")
    parser.add_argument("directories", nargs="+", help="Directories to scan for managed tests")
    parser.add_argument("--recursive", action="store_true", help="Scan sub-directories too")
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in ExecutionMode],
        default=ExecutionMode.RUN_WITH_AI_REPAIR.value,
    )
    parser.add_argument("--no-repair", action="store_true", help="Shortcut for --mode RUN_EXACTLY")
    parser.add_argument("--deflake-runs", type=int, default=None, help="Extra runs of a failing script before repair")
    parser.add_argument("--max-workers", type=int, default=None)
    parser.add_argument(
        "--success-criteria",
        choices=[criteria.value for criteria in SuccessCriteria],
        default=SuccessCriteria.ORIGINAL_SUCCESS.value,
    )
    parser.add_argument("--confidence-threshold", type=int, default=DEFAULT_CONFIDENCE_THRESHOLD)
    parser.add_argument("--model", help="Advisor model override")
    parser.add_argument("--repair-flexibility", type=int, default=None, choices=range(0, 6), metavar="0-5")
    parser.add_argument("--playwright-config", help="Path to a JSON or key: value browser config file")
    parser.add_argument("--headed", action="store_true", help="Show the browser window")
    parser.add_argument(
        "--write-repairs",
        action="store_true",
        help="Write successful repairs back to the test files (default keeps them in the report only)",
    )
    parser.add_argument("--logs-dir", help="Write per-test repair event logs here")
    parser.add_argument("--output", default=DEFAULT_OUTPUT, help=f"Summary JSON path (default: {DEFAULT_OUTPUT})")
    return parser


def _build_list_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mender list", description="List managed tests without running them.")
    parser.add_argument("directories", nargs="+")
    parser.add_argument("--recursive", action="store_true")
    return parser


def _collect_tests(directories: Sequence[str], recursive: bool) -> List[Path]:
    found: List[Path] = []
    for directory in directories:
        try:
            found.extend(find_managed_tests(directory, recursive=recursive))
        except FileNotFoundError as exc:
            print(f"[mender] {exc}", file=sys.stderr)
    return found


def _app_config(args: argparse.Namespace) -> AppConfig:
    browser = CONFIG.browser
    if args.playwright_config:
        text = Path(args.playwright_config).read_text(encoding="utf-8")
        browser = BrowserConfig.from_playwright_config(text, base=browser)
    if args.headed:
        browser = browser.with_headless(False)

    repair = CONFIG.repair
    if args.deflake_runs is not None:
        repair = replace(repair, deflake_run_count=max(0, args.deflake_runs))

    pool = CONFIG.pool
    if args.max_workers is not None:
        pool = replace(pool, max_workers=max(1, args.max_workers))

    return AppConfig(advisor=CONFIG.advisor, browser=browser, repair=repair, pool=pool)


async def _run_tests(args: argparse.Namespace, tests: List[Path]) -> dict:
    config = _app_config(args)
    mode = ExecutionMode.RUN_EXACTLY if args.no_repair else ExecutionMode(args.mode)
    template = ScriptExecutionRequest(
        mode=mode,
        deflake_run_count=config.repair.deflake_run_count,
        headless=config.browser.headless,
        model=args.model,
        repair_flexibility=(
            config.advisor.repair_flexibility if args.repair_flexibility is None else args.repair_flexibility
        ),
    )
    file_handler = LocalFileHandler() if args.write_repairs else NoOpFileHandler()

    pool = WorkerPool(config.pool.max_workers, lambda worker_id: ScriptWorker(worker_id, config=config))
    pool.on(JOB_ERROR, lambda job_id, error: logger.warning("[mender] job %s error: %s", job_id, error))
    async with pool:
        service = RunnerService(pool, file_handler, logs_dir=args.logs_dir, write_repairs=True)
        outcomes = await service.run_files(tests, template)

    return build_summary(outcomes, SuccessCriteria(args.success_criteria), args.confidence_threshold)


def _print_summary(summary: dict) -> None:
    for test in summary["tests"]:
        mark = "OK  " if test["successful"] else "FAIL"
        print(f"[{mark}] {test['test_file']}: {test['detail']}")
    print(
        f"\n{summary['test_count']} tests, {summary['success_count']} successful, "
        f"{summary['failure_count']} failed, {summary['repaired_count']} repaired "
        f"({summary['repaired_above_threshold']} at or above confidence {summary['confidence_threshold']})"
    )


def run_tests(argv: Sequence[str] | None = None) -> int:
    args = _build_run_parser().parse_args(list(argv or []))
    tests = _collect_tests(args.directories, args.recursive)
    if not tests:
        print("[mender] No managed tests found.")
        summary = build_summary([], SuccessCriteria(args.success_criteria), args.confidence_threshold)
    else:
        print(f"[mender] Running {len(tests)} managed tests...")
        summary = asyncio.run(_run_tests(args, tests))
        _print_summary(summary)

    Path(args.output).write_text(json.dumps(summary, ensure_ascii=False, indent=2), encoding="utf-8")
    return 0 if summary["failure_count"] == 0 else 1


def run_list(argv: Sequence[str] | None = None) -> int:
    args = _build_list_parser().parse_args(list(argv or []))
    tests = _collect_tests(args.directories, args.recursive)
    for path in tests:
        print(path)
    return 0


def _build_main_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mender", description="Mender command line interface")
    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("run", help="Run managed tests and repair failures")
    subparsers.add_parser("list", help="List managed tests")
    subparsers.add_parser("help", help="Show help")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    _configure_logging()
    args = list(sys.argv[1:] if argv is None else argv)
    try:
        if not args or args[0] in {"-h", "--help", "help"}:
            _build_main_parser().print_help()
            return 0
        if args[0] == "run":
            return run_tests(args[1:])
        if args[0] == "list":
            return run_list(args[1:])

        _build_main_parser().print_help()
        print(f"Unknown command: {args[0]}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
