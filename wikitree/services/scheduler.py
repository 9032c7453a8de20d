"""
Periodic background jobs.

Each job runs once immediately and then every interval seconds until the
shared stop event is set. The blocking work runs in a worker thread so the
event loop keeps serving requests.
"""

import asyncio
from typing import Callable

from loguru import logger


async def run_periodically(
    name: str,
    job: Callable[[], object],
    interval_seconds: float,
    stop_event: asyncio.Event,
) -> None:
    logger.info(f"[{name}] scheduler started, interval {interval_seconds}s")
    while not stop_event.is_set():
        try:
            await asyncio.to_thread(job)
        except Exception:
            logger.exception(f"[{name}] run failed")
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            continue
    logger.info(f"[{name}] scheduler stopped")
