"""Readiness polling — gate extraction until the page has rendered enough.

Polling is the only retry mechanism in the engine. A timeout is not an
error: the pipeline proceeds with whatever the page holds, because a
partial extraction is preferred to a hard failure.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

ReadinessCheck = Callable[[], Awaitable[bool]]


async def wait_until_ready(
    predicate: ReadinessCheck,
    timeout_ms: int,
    poll_interval_ms: int = 200,
    stabilization_ms: int = 500,
) -> bool:
    """Poll ``predicate`` until it holds or ``timeout_ms`` elapses.

    On success waits ``stabilization_ms`` more (progressive rendering) and
    returns True. On timeout returns False.
    """
    start = time.monotonic()
    deadline = start + timeout_ms / 1000.0

    while time.monotonic() < deadline:
        if await predicate():
            logger.debug(
                "Page ready",
                extra={"elapsed_ms": round((time.monotonic() - start) * 1000)},
            )
            if stabilization_ms > 0:
                await asyncio.sleep(stabilization_ms / 1000.0)
            return True
        await asyncio.sleep(poll_interval_ms / 1000.0)

    logger.info("Readiness timeout reached", extra={"timeout_ms": timeout_ms})
    return False
