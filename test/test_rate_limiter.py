from services.rate_limiter import FixedDelayRateLimiter


def test_rate_limiter_sleeps_fixed_delay():
    sleeps = []
    FixedDelayRateLimiter(2.0, sleep=sleeps.append).wait()
    FixedDelayRateLimiter(0, sleep=sleeps.append).wait()
    assert sleeps == [2.0]
