"""Summarise the current page for repair prompts."""
from __future__ import annotations

import logging
import re
from typing import Any, List

from mender.src.utils.models import PageState

logger = logging.getLogger(__name__)

UNABLE = "Unable to extract"
MAX_DEPTH = 4

INTERACTIVE_ROLES = {"textbox", "button", "link", "checkbox", "radio", "combobox", "slider"}
FORM_ROLES = {"textbox", "checkbox", "radio", "combobox", "slider"}
STRUCTURE_ROLES = {"main", "navigation", "banner", "contentinfo", "complementary", "search"}

_NODE_RE = re.compile(r'^(?P<indent>\s*)- (?P<role>[a-z]+)(?: "(?P<name>(?:[^"\\]|\\.)*)")?')


def _summary(items: List[str], limit: int, category: str) -> str:
    if not items:
        return f"No {category} found"
    text = ", ".join(items[:limit])
    remaining = len(items) - limit
    return f"{text} (+{remaining} more)" if remaining > 0 else text


def summarize_snapshot(url: str, title: str, snapshot: str) -> PageState:
    """Turn a Playwright ARIA snapshot (YAML text) into a PageState."""
    elements: List[str] = []
    form_fields: List[str] = []
    interactive: List[str] = []
    structure: List[str] = []

    for line in (snapshot or "").splitlines():
        match = _NODE_RE.match(line)
        if not match:
            continue
        if len(match.group("indent")) // 2 > MAX_DEPTH:
            continue
        role = match.group("role")
        name = match.group("name")
        info = f"{role}: {name}" if name else role
        elements.append(info)
        if role in INTERACTIVE_ROLES:
            interactive.append(info)
        if role in FORM_ROLES:
            form_fields.append(info)
        if role in STRUCTURE_ROLES:
            structure.append(info)

    return PageState(
        url=url,
        title=title,
        elements=_summary(elements, 15, "elements"),
        form_fields=_summary(form_fields, 8, "form fields"),
        interactive_elements=_summary(interactive, 12, "interactive elements"),
        page_structure=_summary(structure, 6, "page sections"),
    )


async def get_page_state(page: Any) -> PageState:
    url = "Unknown"
    try:
        url = page.url
        title = await page.title()
        snapshot = await page.locator("body").aria_snapshot()
        return summarize_snapshot(url, title, snapshot)
    except Exception as exc:
        logger.warning("[PageInfo] failed to extract page info: %s", exc)
        return PageState(
            url=url or "Unknown",
            title="Unknown",
            elements=UNABLE,
            form_fields=UNABLE,
            interactive_elements=UNABLE,
            page_structure=UNABLE,
        )
