"""
Bounded exponential-backoff retry for remote calls
"""
import asyncio
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from src.core.logger import logger

T = TypeVar("T")


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    *,
    label: str,
    attempts: int = 3,
    base_delay: float = 1.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Await fn() up to `attempts` times.

    Delay before retry i (0-based) is base_delay * 2**i. Errors outside
    `retry_on` propagate immediately; after the last attempt the original
    error is re-raised.
    """
    for attempt in range(attempts):
        try:
            return await fn()
        except retry_on as e:
            if attempt == attempts - 1:
                logger.error(f"{label}: giving up after {attempts} attempts | Error: {e}")
                raise
            delay = base_delay * (2 ** attempt)
            logger.warning(f"{label}: attempt {attempt + 1}/{attempts} failed | Error: {e} | Retrying in {delay} seconds...")
            await sleep(delay)
    raise ValueError("attempts must be >= 1")
