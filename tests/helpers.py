"""
Test helpers shared across suites.
"""

import asyncio
import time

from gatherdb_server.bus import Subscription


def drain(subscription: Subscription) -> list:
    """Pull every payload already delivered to a subscription, without waiting."""
    items = []
    while subscription.pending:
        items.append(subscription._queue.get_nowait())
    return items


async def settle(predicate, attempts: int = 200) -> None:
    """Yield to the event loop until ``predicate()`` holds."""
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached while yielding to the event loop")


def wait_until(predicate, timeout: float = 2.0) -> None:
    """Poll ``predicate()`` from a test thread while the app runs in another."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError(f"condition not reached within {timeout}s")
        time.sleep(0.01)
