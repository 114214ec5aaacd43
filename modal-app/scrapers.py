"""
Vehicle listing scraper.
Renders a listing page, runs the field parsers over its text and retries once
on failure.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Optional, Union

from pydantic import AnyUrl, TypeAdapter, ValidationError

from browser import RenderedPage, RenderTimeoutError, render_page
from constants import ERROR_SCRAPE_FAILED, SCRAPE_ATTEMPTS, SCRAPE_TIMEOUT_SECONDS
from utils import (
    parse_brand,
    parse_color,
    parse_engine_volume,
    parse_mileage,
    parse_model,
    parse_price_usd,
    parse_vin,
    parse_year,
)

logger = logging.getLogger(__name__)

# renderer(url, *, timeout_s, abandoned) -> RenderedPage
Renderer = Callable[..., Awaitable[RenderedPage]]

# Renders that lost the deadline race keep running until their browser is
# closed. References are held here so the tasks are not garbage collected.
_abandoned_renders: set = set()

_URL_ADAPTER = TypeAdapter(AnyUrl)


@dataclass
class VehicleData:
    """Parsed vehicle data from a listing. Every field may be missing."""
    title: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    engine_volume: Optional[float] = None
    mileage: Optional[int] = None
    color: Optional[str] = None
    price_usd: Optional[Union[int, float]] = None
    vin: Optional[str] = None


@dataclass
class ScrapeResult:
    """Result of a scrape operation."""
    success: bool
    data: Optional[VehicleData] = None
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    error_details: Optional[str] = None
    attempts: int = 0


def parse_url(url: str) -> Optional[AnyUrl]:
    """
    Parse a URL with WHATWG rules, the ones Chromium navigates by.

    "https://evil.example\\@cars.com/" has host evil.example here, as in the
    browser. Returns None when the URL does not parse.
    """
    try:
        return _URL_ADAPTER.validate_python(url)
    except ValidationError:
        return None


def is_allowed_domain(url: str, allowed_domains: Iterable[str]) -> bool:
    """
    Check a URL's host against the domain allowlist.

    The host must equal an allowed domain or be a real subdomain of one:
    "m.auto.ria.com" passes for "auto.ria.com", "notauto.ria.com" does not.
    Unparseable URLs are rejected.
    """
    if not url:
        return False
    parsed = parse_url(url)
    if parsed is None or not parsed.host:
        return False

    hostname = parsed.host.lower()
    return any(
        hostname == domain or hostname.endswith(f".{domain}")
        for domain in allowed_domains
    )


def build_corpus(page: RenderedPage) -> str:
    """Title, description and body text joined by newlines, in that order."""
    return f"{page.title}\n{page.description}\n{page.body_text}"


def parse_vehicle(page: RenderedPage, vin_hint: Optional[str] = None) -> VehicleData:
    """
    Run every field parser over a rendered page.

    Parsers match leftmost-first on the corpus, so the title takes priority
    over the description and the description over the body. The model is
    guessed from the title only.

    Args:
        page: Rendered page text
        vin_hint: VIN supplied by the caller, used when the page has none

    Returns:
        VehicleData with the fields that could be found
    """
    corpus = build_corpus(page)
    title = page.title or None
    brand = parse_brand(corpus)

    return VehicleData(
        title=title,
        brand=brand,
        model=parse_model(title, brand),
        year=parse_year(corpus),
        engine_volume=parse_engine_volume(corpus),
        mileage=parse_mileage(corpus),
        color=parse_color(corpus),
        price_usd=parse_price_usd(corpus),
        vin=parse_vin(corpus, vin_hint),
    )


async def scrape_listing(
    url: str,
    vin_hint: Optional[str] = None,
    *,
    renderer: Renderer = render_page,
    timeout_s: float = SCRAPE_TIMEOUT_SECONDS,
    abandoned: Optional[asyncio.Event] = None,
) -> VehicleData:
    """One render attempt followed by parsing. Render failures propagate."""
    page = await renderer(url, timeout_s=timeout_s, abandoned=abandoned)
    vehicle = parse_vehicle(page, vin_hint)
    logger.info(
        f"[SCRAPER] Parsed {url}: {vehicle.brand} {vehicle.model} ({vehicle.year}), "
        f"price: {vehicle.price_usd}, vin: {vehicle.vin}"
    )
    return vehicle


def _forget_render(task: asyncio.Task) -> None:
    _abandoned_renders.discard(task)
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.debug(f"[SCRAPER] Abandoned render finished with {type(error).__name__}: {error}")
    else:
        logger.debug("[SCRAPER] Abandoned render finished")


def _abandon(task: asyncio.Task, abandoned: asyncio.Event) -> None:
    """Stop waiting for a render but let it finish its own cleanup."""
    abandoned.set()
    _abandoned_renders.add(task)
    task.add_done_callback(_forget_render)


async def _run_attempt(
    url: str,
    vin_hint: Optional[str],
    renderer: Renderer,
    timeout_s: float,
) -> VehicleData:
    """
    Run one attempt against its own deadline.

    When the deadline passes first, the attempt's cancellation token is set and
    the render task is left running so its browser still gets closed. The task
    is not cancelled.
    """
    abandoned = asyncio.Event()
    task = asyncio.ensure_future(
        scrape_listing(url, vin_hint, renderer=renderer, timeout_s=timeout_s, abandoned=abandoned)
    )

    try:
        done, _ = await asyncio.wait({task}, timeout=timeout_s)
    except asyncio.CancelledError:
        _abandon(task, abandoned)
        raise

    if task in done:
        return task.result()

    _abandon(task, abandoned)
    raise RenderTimeoutError(f"Scrape timeout after {timeout_s:g}s")


async def scrape_with_retry(
    url: str,
    vin_hint: Optional[str] = None,
    *,
    renderer: Renderer = render_page,
    attempts: int = SCRAPE_ATTEMPTS,
    timeout_s: float = SCRAPE_TIMEOUT_SECONDS,
) -> ScrapeResult:
    """
    Scrape a listing, retrying once on failure.

    Strategy:
    1. Each attempt gets a fresh timeout_s deadline (worst case is
       attempts * timeout_s for the whole call)
    2. Timeouts and render errors are both retried
    3. After the last attempt fails its error message is returned as is

    Args:
        url: Listing URL, already checked against the allowlist
        vin_hint: VIN from the request, used when the page shows none
        renderer: Page renderer, render_page unless injected
        attempts: Maximum number of attempts
        timeout_s: Deadline per attempt in seconds

    Returns:
        ScrapeResult with vehicle data or error
    """
    attempts = max(1, attempts)
    last_error: Optional[BaseException] = None

    for attempt in range(1, attempts + 1):
        try:
            vehicle = await _run_attempt(url, vin_hint, renderer, timeout_s)
        except Exception as e:
            last_error = e
            logger.warning(
                f"[SCRAPER] Attempt {attempt}/{attempts} failed "
                f"({type(e).__name__}): {e}"
            )
            continue

        if attempt > 1:
            logger.info(f"[SCRAPER] Attempt {attempt} succeeded after retry: {url}")
        return ScrapeResult(success=True, data=vehicle, attempts=attempt)

    error_type = "SCRAPER_TIMEOUT" if isinstance(last_error, RenderTimeoutError) else "SCRAPER_ERROR"
    logger.error(f"[SCRAPER] All {attempts} attempts failed for {url}: {last_error}")
    return ScrapeResult(
        success=False,
        error_type=error_type,
        error_message=str(last_error) or ERROR_SCRAPE_FAILED,
        error_details=type(last_error).__name__,
        attempts=attempts,
    )


def vin_only_vehicle(vin: Optional[str]) -> VehicleData:
    """Result for a request without URL: only the VIN is known."""
    return VehicleData(vin=vin or None)


def vehicle_to_dict(vehicle: VehicleData) -> dict:
    """Convert VehicleData to dictionary for JSON serialization."""
    return {
        "title": vehicle.title,
        "brand": vehicle.brand,
        "model": vehicle.model,
        "year": vehicle.year,
        "engine_volume": vehicle.engine_volume,
        "mileage": vehicle.mileage,
        "color": vehicle.color,
        "price_usd": vehicle.price_usd,
        "vin": vehicle.vin,
    }
