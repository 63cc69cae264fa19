"""Browser automation layer built on Playwright."""
from mender.src.browser.executor import StepProgram, execute_step, find_test_function, run_script
from mender.src.browser.page_info import get_page_state, summarize_snapshot
from mender.src.browser.session import BrowserDriver, BrowserSession, PlaywrightDriver, PlaywrightSession

__all__ = [
    "StepProgram",
    "execute_step",
    "find_test_function",
    "run_script",
    "get_page_state",
    "summarize_snapshot",
    "BrowserDriver",
    "BrowserSession",
    "PlaywrightDriver",
    "PlaywrightSession",
]
