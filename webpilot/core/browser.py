"""Page bridge: read page state and perform actions in a browser tab"""

import asyncio
from typing import Dict, Optional, Protocol, Tuple, runtime_checkable

from playwright.async_api import async_playwright, Browser, BrowserContext, Page, Playwright

from .config import (
    DEFAULT_WAIT_TIMEOUT_MS,
    INTERACTIVE_SELECTORS,
    MAX_INTERACTIVE_ELEMENTS,
    MAX_PAGE_TEXT_LENGTH,
    PAGE_LOAD_TIMEOUT_MS,
    POST_NAVIGATION_DELAY,
    TYPING_DELAY_MS,
)
from .errors import ActionExecutionError, PageReadError
from .models import ActionResult, InteractiveElement, PageState
from ..utils.logger import log

# URL prefixes of browser-internal pages that scripts cannot inspect
RESTRICTED_URL_PREFIXES = [
    "chrome://",
    "chrome-extension://",
    "chrome-error://",
    "edge://",
    "about:",
    "devtools://",
    "view-source:",
]

MAX_EXTRACT_LENGTH = 2000
DEFAULT_SCROLL_AMOUNT = 500


def is_restricted_url(url: str) -> bool:
    """Check if URL is a browser-internal page (or unknown) that can't be read."""
    if not url or url == "unknown":
        return True
    return any(url.lower().startswith(prefix) for prefix in RESTRICTED_URL_PREFIXES)


def normalize_url(url: str) -> str:
    """Add https:// when the model gives a bare host like 'example.com'."""
    url = url.strip()
    if url.startswith(("http://", "https://")) or "://" in url or url.startswith("about:"):
        return url
    return "https://" + url


@runtime_checkable
class PageBridge(Protocol):
    """The two page capabilities the executor needs, plus a location probe."""

    async def read_page_state(self) -> PageState:
        ...

    async def perform_action(self, kind: str, params: Dict[str, str]) -> ActionResult:
        ...

    async def current_location(self) -> Tuple[str, str]:
        ...


# Collects interactive elements and visible text in one round trip.
# Arguments: [selectors, maxElements, maxTextLength]
_READ_STATE_JS = """
([selectors, maxElements, maxTextLength]) => {
    const isVisible = (el) => {
        const rect = el.getBoundingClientRect();
        const style = window.getComputedStyle(el);
        return rect.width > 0 && rect.height > 0 &&
            style.visibility !== 'hidden' && style.display !== 'none';
    };
    const cssPath = (el) => {
        if (el.id) return '#' + CSS.escape(el.id);
        const parts = [];
        while (el && el.nodeType === 1 && parts.length < 5) {
            let part = el.tagName.toLowerCase();
            if (el.id) { parts.unshift('#' + CSS.escape(el.id)); break; }
            const parent = el.parentElement;
            if (parent) {
                const same = Array.from(parent.children).filter(c => c.tagName === el.tagName);
                if (same.length > 1) part += ':nth-of-type(' + (same.indexOf(el) + 1) + ')';
            }
            parts.unshift(part);
            el = parent;
        }
        return parts.join(' > ');
    };
    const keep = ['id', 'name', 'href', 'placeholder', 'aria-label', 'role', 'value', 'title'];
    const seen = new Set();
    const elements = [];
    for (const el of document.querySelectorAll(selectors.join(','))) {
        if (elements.length >= maxElements) break;
        if (seen.has(el) || !isVisible(el)) continue;
        seen.add(el);
        const attributes = {};
        for (const name of keep) {
            const value = el.getAttribute(name);
            if (value) attributes[name] = value.slice(0, 200);
        }
        elements.push({
            index: elements.length,
            tag: el.tagName.toLowerCase(),
            type: el.getAttribute('type'),
            text: (el.innerText || el.value || el.getAttribute('aria-label') || '').trim().slice(0, 100),
            selector: cssPath(el),
            attributes,
        });
    }
    const text = (document.body ? document.body.innerText : '').replace(/\\s+/g, ' ').trim();
    return {elements, text: text.slice(0, maxTextLength)};
}
"""


class PlaywrightPageBridge:
    """
    Page bridge over a single Playwright page.

    Actions never raise: failures come back as ActionResult.failure().
    """

    def __init__(self, page: Page, context: Optional[BrowserContext] = None):
        self._page = page
        self._context = context

    @property
    def page(self) -> Page:
        return self._page

    async def current_location(self) -> Tuple[str, str]:
        return self._page.url, await self._page.title()

    async def read_page_state(self) -> PageState:
        url = self._page.url
        if is_restricted_url(url):
            raise PageReadError(f"Cannot read restricted page: {url}")

        try:
            try:
                await self._page.wait_for_load_state("domcontentloaded", timeout=DEFAULT_WAIT_TIMEOUT_MS)
            except Exception:
                pass  # Partially loaded pages are still readable
            title = await self._page.title()
            raw = await self._page.evaluate(
                _READ_STATE_JS,
                [INTERACTIVE_SELECTORS, MAX_INTERACTIVE_ELEMENTS, MAX_PAGE_TEXT_LENGTH],
            )
        except Exception as e:
            raise PageReadError(f"Failed to read page state: {e}") from e

        elements = [
            InteractiveElement(
                index=item["index"],
                tag=item["tag"],
                type=item.get("type"),
                text=item.get("text", ""),
                selector=item["selector"],
                attributes=item.get("attributes") or {},
            )
            for item in raw.get("elements", [])[:MAX_INTERACTIVE_ELEMENTS]
        ]
        return PageState(
            url=url,
            title=title,
            interactive_elements=elements,
            page_text=(raw.get("text") or "")[:MAX_PAGE_TEXT_LENGTH],
        )

    async def perform_action(self, kind: str, params: Dict[str, str]) -> ActionResult:
        """Execute one action; every error becomes a failed result"""
        log("Browser", f"Executing action: {kind} {params}")
        handler = getattr(self, f"_do_{kind}", None)
        if handler is None:
            return ActionResult.failure(f"Unsupported action: {kind}")
        try:
            data = await handler(params)
            return ActionResult.ok(data)
        except ActionExecutionError as e:
            return ActionResult.failure(str(e))
        except Exception as e:
            return ActionResult.failure(f"{kind} failed: {type(e).__name__}: {e}")

    @staticmethod
    def _require(params: Dict[str, str], name: str) -> str:
        value = (params.get(name) or "").strip()
        if not value:
            raise ActionExecutionError(f"Missing required parameter '{name}'")
        return value

    async def _do_navigate(self, params: Dict[str, str]) -> str:
        target_url = normalize_url(self._require(params, "url"))
        await self._page.goto(target_url, wait_until="domcontentloaded", timeout=PAGE_LOAD_TIMEOUT_MS)
        try:
            await self._page.wait_for_load_state("networkidle", timeout=10000)
        except Exception:
            pass
        # Give page time to render
        await asyncio.sleep(POST_NAVIGATION_DELAY)
        if self._page.url.startswith("chrome-error://"):
            raise ActionExecutionError(f"Navigation to {target_url} failed (network error)")
        return f"Navigated to {target_url}"

    async def _do_click(self, params: Dict[str, str]) -> str:
        selector = self._require(params, "selector")
        await self._page.click(selector, timeout=DEFAULT_WAIT_TIMEOUT_MS)
        # Wait briefly for potential navigation
        await asyncio.sleep(0.3)
        return f"Clicked {selector}"

    async def _do_type(self, params: Dict[str, str]) -> str:
        selector = self._require(params, "selector")
        text = params.get("text", "")
        await self._page.fill(selector, "", timeout=DEFAULT_WAIT_TIMEOUT_MS)
        await self._page.type(selector, text, delay=TYPING_DELAY_MS)
        if params.get("press_enter", "").lower() in ("1", "true", "yes"):
            await self._page.press(selector, "Enter")
            await asyncio.sleep(0.3)
        return f"Typed '{text}' into {selector}"

    async def _do_extract(self, params: Dict[str, str]) -> str:
        selector = (params.get("selector") or "").strip() or "body"
        text = await self._page.inner_text(selector, timeout=DEFAULT_WAIT_TIMEOUT_MS)
        text = " ".join(text.split())
        return text[:MAX_EXTRACT_LENGTH]

    async def _do_scroll(self, params: Dict[str, str]) -> str:
        direction = (params.get("direction") or "down").lower()
        try:
            amount = int(params.get("amount") or DEFAULT_SCROLL_AMOUNT)
        except ValueError:
            raise ActionExecutionError(f"Invalid scroll amount: {params.get('amount')!r}")
        delta = -amount if direction == "up" else amount
        await self._page.mouse.wheel(0, delta)
        await asyncio.sleep(0.2)
        return f"Scrolled {'up' if delta < 0 else 'down'} {abs(delta)}px"

    async def _do_wait(self, params: Dict[str, str]) -> str:
        selector = (params.get("selector") or "").strip()
        if selector:
            await self._page.wait_for_selector(selector, timeout=DEFAULT_WAIT_TIMEOUT_MS)
            return f"Element {selector} appeared"
        try:
            seconds = float(params.get("seconds") or 1)
        except ValueError:
            raise ActionExecutionError(f"Invalid wait duration: {params.get('seconds')!r}")
        seconds = max(0.0, min(seconds, DEFAULT_WAIT_TIMEOUT_MS / 1000))
        await asyncio.sleep(seconds)
        return f"Waited {seconds:g}s"

    async def close(self):
        """Close page and its context"""
        try:
            await self._page.close()
        except Exception:
            pass
        if self._context is not None:
            try:
                await self._context.close()
            except Exception:
                pass


class BrowserEngine:
    """Browser engine that manages Playwright and Browser instances."""

    def __init__(self, headless: bool = True):
        self._headless = headless
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()
        self._browser_args = [
            "--no-sandbox",
            "--disable-setuid-sandbox",
            "--disable-dev-shm-usage",
        ]

    async def start(self):
        """Start Playwright and launch browser"""
        async with self._lock:
            if self._playwright is None:
                self._playwright = await async_playwright().start()
            if self._browser is None:
                self._browser = await self._playwright.chromium.launch(
                    headless=self._headless,
                    args=self._browser_args,
                )

    async def new_bridge(self) -> PlaywrightPageBridge:
        """Open a fresh context + page and wrap it in a page bridge."""
        if self._browser is None:
            await self.start()

        context = await self._browser.new_context(viewport={"width": 1280, "height": 720})
        context.set_default_timeout(PAGE_LOAD_TIMEOUT_MS)
        page = await context.new_page()
        return PlaywrightPageBridge(page, context)

    async def stop(self):
        """Stop browser and Playwright with timeout"""
        try:
            async with asyncio.timeout(5):
                async with self._lock:
                    if self._browser:
                        try:
                            await asyncio.wait_for(self._browser.close(), timeout=3)
                        except Exception:
                            pass
                        self._browser = None

                    if self._playwright:
                        try:
                            await asyncio.wait_for(self._playwright.stop(), timeout=3)
                        except Exception:
                            pass
                        self._playwright = None
        except asyncio.TimeoutError:
            self._browser = None
            self._playwright = None
