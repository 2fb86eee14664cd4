"""
Retry helper — bounded attempts with a linearly increasing delay.

Attempt ``n`` that fails (except the last) is followed by a sleep of
``n × base_delay`` seconds. There is no jitter and no cancellation:
callers that need a deadline wrap the whole call.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """How many times to try, and how long to wait between tries."""

    max_attempts: int = 3
    base_delay: float = 1.0
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")

    def delay_for(self, attempt: int) -> float:
        """Delay after failed attempt number ``attempt`` (1-based)."""
        return self.base_delay * attempt

    def call(self, fn: Callable[[], T], description: str = "operation") -> T:
        """Run ``fn`` until it succeeds or attempts run out.

        Raises:
            The exception from the last attempt when all attempts fail.
        """
        last_error = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return fn()
            except Exception as e:
                last_error = e
                if attempt < self.max_attempts:
                    logger.info(
                        "Retry %d/%d %s: %s",
                        attempt,
                        self.max_attempts,
                        description,
                        e,
                    )
                    self.sleep(self.delay_for(attempt))

        raise last_error
