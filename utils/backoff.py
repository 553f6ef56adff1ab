"""
Exponential backoff for rate-limited Gemini calls.
"""

import asyncio
import logging
import re
from typing import Awaitable, Callable, TypeVar

from config import INITIAL_RETRY_DELAY, MAX_RETRIES

logger = logging.getLogger(__name__)

T = TypeVar("T")

RATE_LIMIT_PATTERN = re.compile(r"\b429\b|quota|resource_exhausted", re.IGNORECASE)


def is_rate_limit_error(error: BaseException) -> bool:
    """Return True if the error signals a 429 / quota condition."""
    for attr in ("code", "status", "status_code"):
        value = getattr(error, attr, None)
        if value == 429:
            return True
        if isinstance(value, str) and value.upper() == "RESOURCE_EXHAUSTED":
            return True

    return RATE_LIMIT_PATTERN.search(str(error)) is not None


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = MAX_RETRIES,
    initial_delay: float = INITIAL_RETRY_DELAY,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Await operation(), retrying only on rate-limit errors.

    Args:
        operation: Zero-argument coroutine function to call
        max_retries: Retries allowed after the first attempt
        initial_delay: Seconds to wait before the first retry; doubled each time
        sleep: Awaitable delay function (injectable for tests)

    Returns:
        The operation's result

    Raises:
        The last error, unchanged, once it is not a rate-limit error or
        the retry budget is spent.
    """
    retries = max_retries
    delay = initial_delay

    while True:
        try:
            return await operation()
        except Exception as e:
            if retries <= 0 or not is_rate_limit_error(e):
                raise
            logger.warning(
                "Rate limited. Retrying in %.1fs... (%d retries left)", delay, retries
            )
            await sleep(delay)
            retries -= 1
            delay *= 2
