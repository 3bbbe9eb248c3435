from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Fixed-interval retry with a hard attempt ceiling.

    ``run`` calls ``operation`` until it returns something other than ``None``
    or ``max_attempts`` is reached. It sleeps ``interval_seconds`` between
    attempts, never after the last one.
    """

    max_attempts: int = 5
    interval_seconds: float = 0.5

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.interval_seconds < 0:
            raise ValueError("interval_seconds may not be negative")

    async def run(
        self,
        operation: Callable[[int], Awaitable[T | None]],
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> T | None:
        for attempt in range(1, self.max_attempts + 1):
            result = await operation(attempt)
            if result is not None:
                return result
            if attempt < self.max_attempts:
                LOGGER.debug("Attempt %s/%s missed; retrying in %.2fs", attempt, self.max_attempts, self.interval_seconds)
                await sleep(self.interval_seconds)
        return None
