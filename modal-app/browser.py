"""
Headless browser rendering for listing pages.
Uses Playwright Chromium, one fresh browser per call.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from constants import DEFAULT_USER_AGENT, SCRAPE_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


class ScraperError(Exception):
    """Base class for scrape failures."""


class RenderError(ScraperError):
    """The browser could not load or read the page."""


class RenderTimeoutError(RenderError):
    """Navigation or the whole attempt ran past its deadline."""


@dataclass
class RenderedPage:
    """Raw text pulled from a rendered page. Lives for one attempt only."""
    title: str = ""
    description: str = ""
    body_text: str = ""


# Runs inside the page. Meta tags are looked up by property first, then name.
# Title: og:title -> first <h1> -> document.title
# Description: description -> og:description -> ""
EXTRACT_PAGE_JS = """
() => {
    const getMeta = (name) => {
        const byProperty = document.querySelector(`meta[property='${name}']`);
        if (byProperty && byProperty.content) return byProperty.content;
        const byName = document.querySelector(`meta[name='${name}']`);
        if (byName && byName.content) return byName.content;
        return null;
    };
    const h1 = document.querySelector("h1");
    return {
        title: getMeta("og:title") || (h1 && h1.innerText) || document.title || "",
        description: getMeta("description") || getMeta("og:description") || "",
        bodyText: (document.body && document.body.innerText) || "",
    };
}
"""


async def render_page(
    url: str,
    *,
    timeout_s: float = SCRAPE_TIMEOUT_SECONDS,
    user_agent: str = DEFAULT_USER_AGENT,
    headless: bool = True,
    abandoned: Optional[asyncio.Event] = None,
) -> RenderedPage:
    """
    Load a page in a fresh headless Chromium and read its text.

    A new browser and context are created for every call, so no cookies or
    storage carry over between requests. Navigation returns once the DOM is
    parsed instead of waiting for network idle. The browser is closed on every
    exit path.

    Args:
        url: Page to load
        timeout_s: Navigation bound in seconds
        user_agent: User-Agent for the browser context
        headless: Run Chromium without a window
        abandoned: Set by the caller when it stopped waiting for this render;
            remaining work is skipped and the browser is closed

    Returns:
        RenderedPage with title, description and visible body text

    Raises:
        RenderTimeoutError: navigation ran past timeout_s
        RenderError: any other browser failure
    """
    timeout_ms = int(timeout_s * 1000)
    logger.info(f"[BROWSER] Rendering: {url}")

    try:
        async with async_playwright() as p:
            browser = await p.chromium.launch(headless=headless)
            try:
                context = await browser.new_context(user_agent=user_agent)
                page = await context.new_page()
                page.set_default_timeout(timeout_ms)

                await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)

                if abandoned is not None and abandoned.is_set():
                    logger.info(f"[BROWSER] Render abandoned by caller, closing: {url}")
                    raise RenderError("Render abandoned after timeout")

                payload = await page.evaluate(EXTRACT_PAGE_JS)
            finally:
                await browser.close()
                logger.debug(f"[BROWSER] Browser closed: {url}")
    except PlaywrightTimeoutError as e:
        logger.warning(f"[BROWSER] Timeout after {timeout_s:g}s: {url}")
        raise RenderTimeoutError(str(e)) from e
    except PlaywrightError as e:
        logger.warning(f"[BROWSER] Render failed: {e}")
        raise RenderError(str(e)) from e

    page_data = RenderedPage(
        title=payload.get("title") or "",
        description=payload.get("description") or "",
        body_text=payload.get("bodyText") or "",
    )
    logger.info(
        f"[BROWSER] Rendered {url}: title={page_data.title[:60]!r}, "
        f"body length: {len(page_data.body_text)}"
    )
    return page_data
