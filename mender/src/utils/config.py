"""Configuration helpers for Mender services."""
from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(slots=True)
class AdvisorConfig:
    """Settings for the LLM repair advisor."""

    api_key: Optional[str] = field(default_factory=lambda: os.getenv("OPENAI_API_KEY"))
    model: str = field(default_factory=lambda: os.getenv("MENDER_MODEL", "gpt-4.1-mini"))
    base_url: Optional[str] = field(default_factory=lambda: os.getenv("OPENAI_BASE_URL"))
    request_timeout: int = field(default_factory=lambda: _env_int("MENDER_ADVISOR_TIMEOUT", 60))
    repair_flexibility: int = field(default_factory=lambda: _env_int("MENDER_REPAIR_FLEXIBILITY", 3))

    def __post_init__(self) -> None:
        self.repair_flexibility = max(0, min(5, self.repair_flexibility))


@dataclass(slots=True)
class BrowserConfig:
    """Launch and timeout settings for Playwright sessions."""

    browser_type: str = field(default_factory=lambda: os.getenv("MENDER_BROWSER", "chromium"))
    headless: bool = field(default_factory=lambda: _env_bool("MENDER_HEADLESS", True))
    viewport_width: int = 1280
    viewport_height: int = 720
    step_timeout_ms: int = field(default_factory=lambda: _env_int("MENDER_STEP_TIMEOUT_MS", 5000))
    default_timeout_ms: int = field(default_factory=lambda: _env_int("MENDER_DEFAULT_TIMEOUT_MS", 10000))
    step_hard_timeout: float = field(default_factory=lambda: float(_env_int("MENDER_STEP_HARD_TIMEOUT", 30)))
    context_options: Dict[str, Any] = field(default_factory=dict)

    def with_headless(self, headless: bool | None) -> "BrowserConfig":
        if headless is None:
            return self
        return replace(self, headless=headless)

    @classmethod
    def from_playwright_config(cls, text: str | None, base: "BrowserConfig | None" = None) -> "BrowserConfig":
        """Build a config from JSON or a simple ``key: value`` config file body.

        Unknown keys are ignored; anything unparsable falls back to ``base``.
        """
        config = base or cls()
        if not text or not text.strip():
            return config

        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            data = None

        if isinstance(data, dict):
            viewport = data.get("viewport") or {}
            return replace(
                config,
                browser_type=str(data.get("browserType") or data.get("browser_type") or config.browser_type),
                headless=bool(data.get("headless", config.headless)),
                viewport_width=int(viewport.get("width", config.viewport_width)),
                viewport_height=int(viewport.get("height", config.viewport_height)),
                context_options=dict(data.get("options") or config.context_options),
            )

        headless_match = re.search(r"headless\s*[:=]\s*(true|false|True|False)", text)
        viewport_match = re.search(
            r"viewport\s*[:=]\s*\{\s*['\"]?width['\"]?\s*:\s*(\d+)\s*,\s*['\"]?height['\"]?\s*:\s*(\d+)\s*\}",
            text,
        )
        browser_match = re.search(r"browser_?[tT]ype\s*[:=]\s*['\"`](chromium|firefox|webkit)['\"`]", text)
        return replace(
            config,
            browser_type=browser_match.group(1) if browser_match else config.browser_type,
            headless=headless_match.group(1).lower() == "true" if headless_match else config.headless,
            viewport_width=int(viewport_match.group(1)) if viewport_match else config.viewport_width,
            viewport_height=int(viewport_match.group(2)) if viewport_match else config.viewport_height,
        )


@dataclass(slots=True)
class RepairConfig:
    """Bounds for the step repair loop."""

    max_tries: int = 3
    recent_repairs: int = 3
    deflake_run_count: int = field(default_factory=lambda: _env_int("MENDER_DEFLAKE_RUNS", 1))


@dataclass(slots=True)
class PoolConfig:
    """Worker pool sizing."""

    max_workers: int = field(default_factory=lambda: _env_int("MENDER_MAX_WORKERS", 2))


@dataclass(slots=True)
class AppConfig:
    """Aggregated configuration for the runner."""

    advisor: AdvisorConfig = field(default_factory=AdvisorConfig)
    browser: BrowserConfig = field(default_factory=BrowserConfig)
    repair: RepairConfig = field(default_factory=RepairConfig)
    pool: PoolConfig = field(default_factory=PoolConfig)


CONFIG = AppConfig()
