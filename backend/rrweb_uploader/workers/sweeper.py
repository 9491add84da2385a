"""Background eviction of idle sessions."""
import asyncio
from typing import Optional

from rrweb_uploader.services.registry import SessionRegistry
from rrweb_uploader.utils.logger import logger


async def sweep_idle_sessions(registry: SessionRegistry, interval_seconds: float) -> None:
    """
    Evict idle sessions every interval until cancelled.

    Sessions are considered idle when nothing touched them for longer than
    the registry's idle timeout. Their buffered events are dropped.

    Args:
        registry: Live session registry
        interval_seconds: Delay between sweeps
    """
    logger.info(
        f"Idle session sweeper started (every {interval_seconds:g}s, "
        f"timeout {registry.idle_timeout_ms / 1000:g}s)"
    )
    try:
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                evicted = registry.sweep_expired()
            except Exception as e:
                logger.error(f"Idle session sweep failed: {e}", exc_info=True)
                continue
            if evicted:
                logger.info(f"Swept {len(evicted)} idle sessions, {len(registry)} still live")
    except asyncio.CancelledError:
        logger.info("Idle session sweeper stopped")
        raise


def start_sweeper(registry: SessionRegistry, interval_seconds: float) -> asyncio.Task:
    """Schedule the sweeper on the running event loop."""
    return asyncio.create_task(sweep_idle_sessions(registry, interval_seconds), name="idle-session-sweeper")


async def stop_sweeper(task: Optional[asyncio.Task]) -> None:
    """Cancel the sweeper and wait for it to exit."""
    if task is None or task.done():
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
