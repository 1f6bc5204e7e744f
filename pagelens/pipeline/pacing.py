"""Human pacing — jittered pauses between extraction passes."""

from __future__ import annotations

import asyncio
import random

from pagelens.config.settings import PacingConfig


async def human_pause(min_ms: int, max_ms: int, config: PacingConfig | None = None) -> None:
    """Sleep a uniformly random duration in ``[min_ms, max_ms]``."""
    config = config or PacingConfig()
    if not config.enabled:
        return
    delay = random.uniform(min_ms, max_ms) / 1000.0 * config.scale
    await asyncio.sleep(delay)


async def settle(ms: int, config: PacingConfig | None = None) -> None:
    """Fixed wait after a click or scroll so lazy content can render."""
    config = config or PacingConfig()
    if not config.enabled:
        return
    await asyncio.sleep(ms / 1000.0 * config.scale)
