"""
Retrying Transport

Retry an async operation with exponential backoff.

Attempt 1 runs immediately. After failed attempt N the transport waits
base_delay * 2**N seconds (0.5s, 1s, 2s, ... with the defaults) and tries
again, until max_attempts is reached. No jitter.

The operation decides what counts as failure by raising a ConsentError;
every ConsentError is retried. Any other exception is a bug and propagates
immediately.
"""

import asyncio
from typing import Awaitable, Callable, TypeVar

from ...common.exceptions import ConsentError
from ...common.logging_setup import get_service_logger

logger = get_service_logger("network.retry")

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BASE_DELAY_S = 0.25


class RetryingTransport:
    """Exponential-backoff retry primitive, generic over the result type"""

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY_S,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep

    def backoff_delay(self, attempt: int, base_delay: float | None = None) -> float:
        """Delay after failed attempt number `attempt` (1-indexed)"""
        base = self.base_delay if base_delay is None else base_delay
        return base * (2 ** attempt)

    async def retry(
        self,
        operation: Callable[[], Awaitable[T]],
        max_attempts: int | None = None,
        base_delay: float | None = None,
        label: str = "operation",
    ) -> T:
        """
        Run `operation` until it succeeds or attempts run out.

        Args:
            operation: Zero-argument coroutine factory, called once per attempt
            max_attempts: Override the transport default
            base_delay: Override the transport default (seconds)
            label: Name used in log messages

        Returns:
            The operation's result

        Raises:
            ConsentError: The last error once attempts are exhausted
            ValueError: If max_attempts is below 1
        """
        attempts = self.max_attempts if max_attempts is None else max_attempts
        if attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        attempt = 1

        while True:
            try:
                result = await operation()
            except ConsentError as e:
                if attempt >= attempts:
                    logger.warning(
                        f"{label} failed after {attempt} attempt(s): {e}",
                        extra={"attempts": attempt},
                    )
                    raise

                delay = self.backoff_delay(attempt, base_delay)
                logger.info(
                    f"{label} failed (attempt {attempt}/{attempts}), retrying in {delay:.2f}s: {e}",
                    extra={"attempt": attempt, "delay_s": delay},
                )
                await self._sleep(delay)
                attempt += 1
                continue

            if attempt > 1:
                logger.info(f"{label} succeeded on attempt {attempt}")
            return result
