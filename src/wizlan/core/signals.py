from __future__ import annotations

import asyncio


async def sleep_or_cancelled(delay: float, cancel: asyncio.Event | None) -> bool:
    """Sleep for ``delay`` seconds. Returns True if ``cancel`` fired first."""
    if cancel is None:
        await asyncio.sleep(delay)
        return False
    if cancel.is_set():
        return True
    try:
        await asyncio.wait_for(cancel.wait(), timeout=delay)
    except TimeoutError:
        return False
    return True
