import pytest

from rate_limiter import SlidingWindowRateLimiter


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


def test_admits_up_to_limit(clock):
    limiter = SlidingWindowRateLimiter(window_ms=60_000, max_requests=3, clock=clock)

    decisions = [limiter.hit("10.0.0.1") for _ in range(4)]

    assert [d.allowed for d in decisions] == [True, True, True, False]
    assert [d.remaining for d in decisions] == [2, 1, 0, 0]
    assert decisions[0].limit == 3


def test_clients_are_independent(clock):
    limiter = SlidingWindowRateLimiter(window_ms=60_000, max_requests=1, clock=clock)

    assert limiter.hit("10.0.0.1").allowed is True
    assert limiter.hit("10.0.0.1").allowed is False
    assert limiter.hit("10.0.0.2").allowed is True


def test_window_slides(clock):
    limiter = SlidingWindowRateLimiter(window_ms=10_000, max_requests=2, clock=clock)

    limiter.hit("c")
    clock.advance(6)
    limiter.hit("c")
    assert limiter.hit("c").allowed is False

    # First hit leaves the window, second one is still inside
    clock.advance(4.5)
    assert limiter.hit("c").allowed is True
    assert limiter.hit("c").allowed is False


def test_rejection_reports_reset(clock):
    limiter = SlidingWindowRateLimiter(window_ms=10_000, max_requests=1, clock=clock)

    limiter.hit("c")
    clock.advance(3)
    decision = limiter.hit("c")

    assert decision.allowed is False
    assert decision.reset_after_s == pytest.approx(7.0)


def test_rejected_hits_are_not_counted(clock):
    limiter = SlidingWindowRateLimiter(window_ms=10_000, max_requests=1, clock=clock)

    limiter.hit("c")
    for _ in range(5):
        clock.advance(1)
        limiter.hit("c")

    # Only the admitted hit at t=0 counts; it expires at t=10
    clock.advance(5.5)
    assert limiter.hit("c").allowed is True


def test_zero_limit_blocks_everything(clock):
    limiter = SlidingWindowRateLimiter(window_ms=10_000, max_requests=0, clock=clock)

    decision = limiter.hit("c")

    assert decision.allowed is False
    assert decision.reset_after_s == pytest.approx(10.0)
