import time
from typing import Callable

from config import ENHANCEMENT_GAP_DELAY_SECONDS
from services.logging_service import get_logger


class FixedDelayRateLimiter:
    """Sleeps a fixed interval between consecutive provider calls."""

    def __init__(self, delay_seconds: float = ENHANCEMENT_GAP_DELAY_SECONDS,
                 sleep: Callable[[float], None] = time.sleep):
        self.delay_seconds = delay_seconds
        self._sleep = sleep

    def wait(self):
        if self.delay_seconds <= 0:
            return
        get_logger().debug(f"Waiting {self.delay_seconds}s before next request...")
        self._sleep(self.delay_seconds)
