"""
Evaluation submission utility with retry logic
"""
import asyncio
import httpx
from typing import Any, Awaitable, Callable, Dict, Optional

from src.core.errors import NotificationError
from src.core.logger import logger


async def send_evaluation(
    evaluation_url: str,
    payload: Dict[str, Any],
    max_retries: int = 5,
    base_delay: float = 1.0,
    timeout: float = 30.0,
    client: Optional[httpx.AsyncClient] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> int:
    """
    POST the completion payload, retrying with doubling delays.

    The same payload is sent on every attempt; the receiver deduplicates by
    nonce. Returns the attempt number (1-based) that succeeded.

    Raises:
        NotificationError after `max_retries` failed attempts
    """
    own_client = client is None
    if own_client:
        client = httpx.AsyncClient(timeout=timeout)

    try:
        for attempt in range(max_retries):
            try:
                logger.info(f"-----Attempt {attempt + 1}/{max_retries} | Sending to {evaluation_url}-----")

                response = await client.post(
                    evaluation_url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                    timeout=timeout,
                )

                if 200 <= response.status_code < 300:
                    logger.info(
                        f"Evaluation submitted successfully | "
                        f"Email={payload.get('email')} | Round={payload.get('round')} | "
                        f"URL={evaluation_url}"
                    )
                    logger.debug(f"Response: {response.text}")
                    return attempt + 1

                logger.warning(
                    f"Evaluation returned {response.status_code} | "
                    f"Attempt {attempt + 1}/{max_retries} | "
                    f"Response: {response.text[:200]}"
                )

            except httpx.TimeoutException as e:
                logger.error(f"Timeout on attempt {attempt + 1}/{max_retries} | Error: {e}")
            except httpx.HTTPError as e:
                logger.error(f"Network error on attempt {attempt + 1}/{max_retries} | Error: {e}")

            if attempt < max_retries - 1:
                delay = base_delay * (2 ** attempt)
                logger.info(f"Retrying in {delay} seconds...")
                await sleep(delay)
    finally:
        if own_client:
            await client.aclose()

    # All retries exhausted
    logger.error(
        f"Failed to send evaluation after {max_retries} attempts | "
        f"Email={payload.get('email')} | Round={payload.get('round')} | "
        f"URL={evaluation_url}"
    )
    logger.info(f"=====Final payload that failed=====\n{payload}\n===============")
    raise NotificationError(f"Failed to notify {evaluation_url} after {max_retries} attempts")
