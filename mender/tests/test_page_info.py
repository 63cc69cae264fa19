from fakes import run
from mender.src.browser.page_info import UNABLE, get_page_state, summarize_snapshot

SNAPSHOT = """- banner:
  - link "Home"
  - navigation:
    - link "Deals"
- main:
  - heading "Sign in" [level=1]
  - textbox "Email"
  - checkbox "Remember me"
  - button "Sign in"
"""


def test_summary_groups_roles():
    state = summarize_snapshot("https://example.com/login", "Login", SNAPSHOT)

    assert state.url == "https://example.com/login"
    assert state.interactive_elements == (
        "link: Home, link: Deals, textbox: Email, checkbox: Remember me, button: Sign in"
    )
    assert state.form_fields == "textbox: Email, checkbox: Remember me"
    assert state.page_structure == "banner, navigation, main"
    assert state.elements.startswith("banner, link: Home")


def test_long_lists_are_truncated_with_count():
    snapshot = "\n".join(f'- button "B{n}"' for n in range(20))

    state = summarize_snapshot("u", "t", snapshot)

    assert state.elements.endswith("button: B14 (+5 more)")
    assert state.interactive_elements.endswith("button: B11 (+8 more)")
    assert state.form_fields == "No form fields found"
    assert state.page_structure == "No page sections found"


def test_deeply_nested_nodes_are_skipped():
    snapshot = '- main:\n' + "          " + '- button "Too deep"'

    state = summarize_snapshot("u", "t", snapshot)

    assert state.interactive_elements == "No interactive elements found"


def test_render_includes_every_field():
    rendered = summarize_snapshot("https://x.test", "X", SNAPSHOT).render()

    assert rendered.startswith("Current URL: https://x.test\nPage Title: X")
    assert "Form Fields: textbox: Email" in rendered


class _Locator:
    def __init__(self, snapshot):
        self.snapshot = snapshot

    async def aria_snapshot(self):
        if isinstance(self.snapshot, Exception):
            raise self.snapshot
        return self.snapshot


class _Page:
    def __init__(self, snapshot):
        self.url = "https://example.com/login"
        self._snapshot = snapshot

    async def title(self):
        return "Login"

    def locator(self, selector):
        assert selector == "body"
        return _Locator(self._snapshot)


def test_get_page_state_reads_aria_snapshot():
    state = run(get_page_state(_Page(SNAPSHOT)))

    assert state.title == "Login"
    assert "button: Sign in" in state.interactive_elements


def test_get_page_state_degrades_when_page_is_gone():
    state = run(get_page_state(_Page(RuntimeError("Target closed"))))

    assert state.url == "https://example.com/login"
    assert state.title == "Unknown"
    assert state.elements == UNABLE
    assert state.interactive_elements == UNABLE
