"""
Poll a published site until it answers 200 or the deadline passes
"""
import asyncio
from dataclasses import dataclass
from typing import Optional

import httpx

from src.core.errors import VerificationTimeout
from src.core.logger import logger


@dataclass(frozen=True)
class DeploymentStatus:
    ready: bool
    attempts: int
    last_status: Optional[int] = None


async def wait_for_live(
    site_url: str,
    poll_interval: float = 5.0,
    timeout: float = 120.0,
    client: Optional[httpx.AsyncClient] = None,
    request_timeout: float = 10.0,
    strict: bool = False,
) -> DeploymentStatus:
    """
    GET `site_url` every `poll_interval` seconds until it returns 200.

    A site that is not live by `timeout` gives ready=False, or raises
    VerificationTimeout when `strict` is set.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    own_client = client is None
    if own_client:
        client = httpx.AsyncClient(timeout=request_timeout, follow_redirects=True)

    attempts = 0
    last_status = None
    try:
        while True:
            attempts += 1
            try:
                response = await client.get(site_url, timeout=request_timeout)
                last_status = response.status_code
                if response.status_code == 200:
                    logger.info(f"wait_for_live({site_url}): live after {attempts} attempt(s)")
                    return DeploymentStatus(ready=True, attempts=attempts, last_status=last_status)
                logger.info(f"wait_for_live({site_url}): attempt {attempts} returned {response.status_code}")
            except httpx.HTTPError as e:
                logger.info(f"wait_for_live({site_url}): attempt {attempts} failed | Error: {e}")

            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            await asyncio.sleep(min(poll_interval, remaining))
    finally:
        if own_client:
            await client.aclose()

    logger.warning(f"wait_for_live({site_url}): not live after {timeout}s ({attempts} attempts, last status {last_status})")
    if strict:
        raise VerificationTimeout(site_url, timeout)
    return DeploymentStatus(ready=False, attempts=attempts, last_status=last_status)
