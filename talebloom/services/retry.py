"""
Retry with exponential backoff for flaky async calls
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryExhaustedError(Exception):
    """Raised when every attempt failed"""

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"failed after {attempts} attempts")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 1.0

    def delay_for(self, attempt: int) -> float:
        """Backoff before the next try, after `attempt` (1-based) failed."""
        return self.base_delay * (2 ** (attempt - 1))


def _is_empty(result: Any) -> bool:
    return not result


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    is_failure: Callable[[Any], bool] = _is_empty,
    label: str = "operation",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Run `operation` until it returns a result that is not a failure.

    Exceptions and results matching `is_failure` both count as failed
    attempts. After `policy.max_attempts` failures RetryExhaustedError is
    raised with the last exception attached.
    """
    last_error: Optional[BaseException] = None

    for attempt in range(1, policy.max_attempts + 1):
        try:
            result = await operation()
            if not is_failure(result):
                if attempt > 1:
                    logger.info(f"{label} succeeded on attempt {attempt}")
                return result
            last_error = None
            logger.warning(f"{label} attempt {attempt}/{policy.max_attempts} returned no result")
        except Exception as e:
            last_error = e
            logger.warning(f"{label} attempt {attempt}/{policy.max_attempts} failed: {e}")

        if attempt < policy.max_attempts:
            await sleep(policy.delay_for(attempt))

    raise RetryExhaustedError(policy.max_attempts, last_error)
