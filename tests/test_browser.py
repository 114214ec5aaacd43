"""
Tests for render_page with Playwright replaced by in-memory fakes.
No real browser is launched.
"""

import asyncio

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

import browser
from browser import RenderedPage, RenderError, RenderTimeoutError, render_page


class FakePage:
    def __init__(self, payload, goto_error=None, evaluate_error=None):
        self.payload = payload
        self.goto_error = goto_error
        self.evaluate_error = evaluate_error
        self.goto_calls = []
        self.default_timeout = None
        self.evaluated = False

    def set_default_timeout(self, timeout_ms):
        self.default_timeout = timeout_ms

    async def goto(self, url, wait_until=None, timeout=None):
        self.goto_calls.append({"url": url, "wait_until": wait_until, "timeout": timeout})
        if self.goto_error is not None:
            raise self.goto_error

    async def evaluate(self, script):
        self.evaluated = True
        if self.evaluate_error is not None:
            raise self.evaluate_error
        return self.payload


class FakeContext:
    def __init__(self, page):
        self.page = page

    async def new_page(self):
        return self.page


class FakeBrowser:
    def __init__(self, page):
        self.page = page
        self.context_kwargs = None
        self.closed = False

    async def new_context(self, **kwargs):
        self.context_kwargs = kwargs
        return FakeContext(self.page)

    async def close(self):
        self.closed = True


class FakeChromium:
    def __init__(self, fake_browser):
        self.browser = fake_browser
        self.launch_kwargs = None

    async def launch(self, **kwargs):
        self.launch_kwargs = kwargs
        return self.browser


class FakePlaywrightManager:
    def __init__(self, chromium):
        self.chromium = chromium

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


@pytest.fixture
def fake_playwright(monkeypatch):
    """Patch async_playwright; returns a factory that wires up the fakes."""
    def install(payload=None, goto_error=None, evaluate_error=None):
        page = FakePage(payload or {}, goto_error=goto_error, evaluate_error=evaluate_error)
        fake_browser = FakeBrowser(page)
        chromium = FakeChromium(fake_browser)
        monkeypatch.setattr(browser, "async_playwright", lambda: FakePlaywrightManager(chromium))
        return chromium, fake_browser, page

    return install


@pytest.mark.asyncio
async def test_render_reads_page_text(fake_playwright):
    chromium, fake_browser, page = fake_playwright({
        "title": "Toyota Camry SE",
        "description": "2014, 85000 km",
        "bodyText": "Price: $12,900",
    })

    result = await render_page("https://cars.com/x", user_agent="UA/1.0")

    assert result == RenderedPage(
        title="Toyota Camry SE",
        description="2014, 85000 km",
        body_text="Price: $12,900",
    )
    assert chromium.launch_kwargs == {"headless": True}
    assert fake_browser.context_kwargs == {"user_agent": "UA/1.0"}
    assert page.goto_calls == [
        {"url": "https://cars.com/x", "wait_until": "domcontentloaded", "timeout": 30000}
    ]
    assert page.default_timeout == 30000
    assert fake_browser.closed is True


@pytest.mark.asyncio
async def test_render_defaults_missing_text_to_empty(fake_playwright):
    fake_playwright({"title": None, "bodyText": ""})

    result = await render_page("https://cars.com/x")

    assert result == RenderedPage(title="", description="", body_text="")


@pytest.mark.asyncio
async def test_navigation_timeout_is_typed_and_browser_closed(fake_playwright):
    _, fake_browser, page = fake_playwright(
        goto_error=PlaywrightTimeoutError("Timeout 30000ms exceeded.")
    )

    with pytest.raises(RenderTimeoutError, match="Timeout 30000ms exceeded."):
        await render_page("https://cars.com/x")

    assert fake_browser.closed is True
    assert page.evaluated is False


@pytest.mark.asyncio
async def test_network_error_is_render_error(fake_playwright):
    _, fake_browser, _ = fake_playwright(
        goto_error=PlaywrightError("net::ERR_NAME_NOT_RESOLVED at https://cars.com/x")
    )

    with pytest.raises(RenderError) as excinfo:
        await render_page("https://cars.com/x")

    assert not isinstance(excinfo.value, RenderTimeoutError)
    assert "ERR_NAME_NOT_RESOLVED" in str(excinfo.value)
    assert fake_browser.closed is True


@pytest.mark.asyncio
async def test_abandoned_render_skips_extraction(fake_playwright):
    _, fake_browser, page = fake_playwright({"title": "never read"})
    abandoned = asyncio.Event()
    abandoned.set()

    with pytest.raises(RenderError, match="abandoned"):
        await render_page("https://cars.com/x", abandoned=abandoned)

    assert page.evaluated is False
    assert fake_browser.closed is True


@pytest.mark.asyncio
async def test_custom_timeout_and_headful(fake_playwright):
    chromium, _, page = fake_playwright({"title": "x"})

    await render_page("https://cars.com/x", timeout_s=5, headless=False)

    assert chromium.launch_kwargs == {"headless": False}
    assert page.goto_calls[0]["timeout"] == 5000


@pytest.mark.asyncio
async def test_extraction_error_still_closes_browser(fake_playwright):
    _, fake_browser, page = fake_playwright(
        evaluate_error=PlaywrightError("Execution context was destroyed")
    )

    with pytest.raises(RenderError, match="Execution context was destroyed"):
        await render_page("https://cars.com/x")

    assert page.evaluated is True
    assert fake_browser.closed is True
