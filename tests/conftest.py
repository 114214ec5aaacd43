import pytest

from browser import RenderedPage
from config import Settings


LISTING_VIN = "4T1BF1FK5EU123456"


@pytest.fixture
def listing_page():
    """A rendered Camry listing with every field present somewhere."""
    return RenderedPage(
        title="Toyota Camry SE | Clean Title",
        description="2014 Toyota Camry, 2.5L, 85000 km, Silver",
        body_text=f"Price: $12,900\nVIN: {LISTING_VIN}\nCall the dealer today",
    )


@pytest.fixture
def settings():
    return Settings(
        allowed_domains=("auto.ria.com", "cars.com"),
        rate_limit_window_ms=60_000,
        rate_limit_max=100,
        scrape_timeout_s=5,
        scrape_attempts=2,
    )


class FakeRenderer:
    """Renderer double: returns or raises the queued outcomes in order."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    async def __call__(self, url, *, timeout_s, abandoned=None):
        self.calls.append(url)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest.fixture
def fake_renderer():
    return FakeRenderer
