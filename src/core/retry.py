"""Bounded retry for destination publishes (core domain)."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from core.config import PublishConfig

LOGGER = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


async def retry_publish(
    publish_fn: Callable[[], Awaitable[object]],
    label: str = "publish",
    config: PublishConfig = PublishConfig(),
    sleep: Sleep = asyncio.sleep,
) -> bool:
    """Run ``publish_fn`` up to ``config.max_attempts`` times.

    Waits ``attempt * base_delay`` seconds between attempts. Never raises:
    callers only see whether the publish eventually went through.
    """

    max_attempts = max(1, config.max_attempts)
    for attempt in range(1, max_attempts + 1):
        try:
            await publish_fn()
        except Exception as exc:
            LOGGER.error("%s failed (attempt %s/%s): %s", label, attempt, max_attempts, exc)
            if attempt < max_attempts:
                delay = config.base_delay_seconds * attempt
                LOGGER.info("%s retry in %.1fs", label, delay)
                await sleep(delay)
            continue

        if attempt > 1:
            LOGGER.info("%s succeeded after %s attempts", label, attempt)
        return True

    LOGGER.error("%s abandoned after %s attempts", label, max_attempts)
    return False
