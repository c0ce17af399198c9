"""
Test the Playwright page bridge against a mocked page.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from webpilot.core.browser import (
    PageBridge,
    PlaywrightPageBridge,
    is_restricted_url,
    normalize_url,
)
from webpilot.core.errors import PageReadError


def make_page(url="https://example.com/"):
    page = MagicMock()
    page.url = url
    page.title = AsyncMock(return_value="Example")
    page.wait_for_load_state = AsyncMock()
    page.evaluate = AsyncMock(return_value={"elements": [], "text": ""})
    page.goto = AsyncMock()
    page.click = AsyncMock()
    page.fill = AsyncMock()
    page.type = AsyncMock()
    page.press = AsyncMock()
    page.inner_text = AsyncMock(return_value="")
    page.wait_for_selector = AsyncMock()
    page.mouse.wheel = AsyncMock()
    page.close = AsyncMock()
    return page


class TestUrlHelpers:
    """Test URL classification and normalization."""

    @pytest.mark.parametrize("url", [
        "chrome://newtab/",
        "chrome-extension://abc/popup.html",
        "about:blank",
        "edge://settings",
        "",
        "unknown",
    ])
    def test_restricted(self, url):
        assert is_restricted_url(url)

    def test_regular_page(self):
        assert not is_restricted_url("https://example.com/")
        assert not is_restricted_url("http://localhost:8000")

    def test_normalize_bare_host(self):
        assert normalize_url("example.com") == "https://example.com"
        assert normalize_url("  example.com/path ") == "https://example.com/path"

    def test_normalize_keeps_scheme(self):
        assert normalize_url("http://example.com") == "http://example.com"
        assert normalize_url("about:blank") == "about:blank"
        assert normalize_url("file:///tmp/a.html") == "file:///tmp/a.html"


class TestReadPageState:
    """Test page observation."""

    @pytest.mark.asyncio
    async def test_reads_elements_and_text(self):
        page = make_page()
        page.evaluate.return_value = {
            "elements": [{
                "index": 0,
                "tag": "a",
                "type": None,
                "text": "More information",
                "selector": "a",
                "attributes": {"href": "https://www.iana.org/domains/example"},
            }],
            "text": "Example Domain",
        }
        bridge = PlaywrightPageBridge(page)

        state = await bridge.read_page_state()

        assert state.url == "https://example.com/"
        assert state.title == "Example"
        assert state.page_text == "Example Domain"
        assert len(state.interactive_elements) == 1
        element = state.interactive_elements[0]
        assert element.tag == "a"
        assert element.text == "More information"
        assert element.attributes["href"] == "https://www.iana.org/domains/example"

    @pytest.mark.asyncio
    async def test_restricted_page_raises(self):
        bridge = PlaywrightPageBridge(make_page("chrome://newtab/"))

        with pytest.raises(PageReadError):
            await bridge.read_page_state()

    @pytest.mark.asyncio
    async def test_script_failure_raises(self):
        page = make_page()
        page.evaluate.side_effect = RuntimeError("Execution context was destroyed")
        bridge = PlaywrightPageBridge(page)

        with pytest.raises(PageReadError):
            await bridge.read_page_state()

    @pytest.mark.asyncio
    async def test_current_location(self):
        bridge = PlaywrightPageBridge(make_page())
        assert await bridge.current_location() == ("https://example.com/", "Example")

    def test_satisfies_protocol(self):
        assert isinstance(PlaywrightPageBridge(make_page()), PageBridge)


class TestPerformAction:
    """Test action dispatch; failures never raise."""

    @pytest.mark.asyncio
    async def test_unknown_action(self):
        result = await PlaywrightPageBridge(make_page()).perform_action("hover", {})
        assert not result.success
        assert "Unsupported action" in result.error

    @pytest.mark.asyncio
    async def test_navigate(self):
        page = make_page("about:blank")

        async def goto(url, **kwargs):
            page.url = url

        page.goto.side_effect = goto
        result = await PlaywrightPageBridge(page).perform_action("navigate", {"url": "example.com"})

        assert result.success
        assert result.data == "Navigated to https://example.com"
        assert page.goto.await_args.args[0] == "https://example.com"

    @pytest.mark.asyncio
    async def test_navigate_network_error(self):
        page = make_page("chrome-error://chromewebdata/")
        result = await PlaywrightPageBridge(page).perform_action("navigate", {"url": "https://nowhere.invalid"})

        assert not result.success
        assert "network error" in result.error

    @pytest.mark.asyncio
    async def test_missing_parameter(self):
        result = await PlaywrightPageBridge(make_page()).perform_action("click", {})
        assert not result.success
        assert result.error == "Missing required parameter 'selector'"

    @pytest.mark.asyncio
    async def test_click_error_becomes_failure(self):
        page = make_page()
        page.click.side_effect = TimeoutError("Timeout 3000ms exceeded")

        result = await PlaywrightPageBridge(page).perform_action("click", {"selector": "#missing"})

        assert not result.success
        assert result.error.startswith("click failed: TimeoutError")

    @pytest.mark.asyncio
    async def test_type_with_enter(self):
        page = make_page()

        result = await PlaywrightPageBridge(page).perform_action(
            "type", {"selector": "#q", "text": "hello", "press_enter": "true"}
        )

        assert result.success
        page.fill.assert_awaited_once()
        assert page.type.await_args.args[:2] == ("#q", "hello")
        page.press.assert_awaited_once_with("#q", "Enter")

    @pytest.mark.asyncio
    async def test_extract_defaults_to_body(self):
        page = make_page()
        page.inner_text.return_value = "Example   Domain\n\nMore"

        result = await PlaywrightPageBridge(page).perform_action("extract", {})

        assert result.data == "Example Domain More"
        assert page.inner_text.await_args.args[0] == "body"

    @pytest.mark.asyncio
    async def test_scroll_up(self):
        page = make_page()

        result = await PlaywrightPageBridge(page).perform_action("scroll", {"direction": "up", "amount": "300"})

        assert result.success
        page.mouse.wheel.assert_awaited_once_with(0, -300)

    @pytest.mark.asyncio
    async def test_scroll_bad_amount(self):
        result = await PlaywrightPageBridge(make_page()).perform_action("scroll", {"amount": "lots"})
        assert not result.success
        assert "Invalid scroll amount" in result.error

    @pytest.mark.asyncio
    async def test_wait_for_selector(self):
        page = make_page()

        result = await PlaywrightPageBridge(page).perform_action("wait", {"selector": ".results"})

        assert result.success
        assert page.wait_for_selector.await_args.args[0] == ".results"

    @pytest.mark.asyncio
    async def test_wait_seconds(self):
        result = await PlaywrightPageBridge(make_page()).perform_action("wait", {"seconds": "0"})
        assert result.data == "Waited 0s"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
