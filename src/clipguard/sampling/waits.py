"""
Suspension Primitives
=====================

Bounded waits used by the sampler.

Every wait in the capture path goes through one of these helpers, so
nothing can suspend indefinitely:
    - wait_first: first of {event, timeout}
    - wait_until: poll a predicate until true or timeout
"""

import asyncio
from typing import Callable, Optional


async def wait_first(event: Optional[asyncio.Event], timeout: float) -> bool:
    """
    Wait for an event or a timeout, whichever comes first.
    
    Args:
        event: Event to wait on; None waits out the full timeout
        timeout: Maximum seconds to wait
        
    Returns:
        True if the event fired, False on timeout
    """
    if event is None:
        await asyncio.sleep(timeout)
        return False
    if event.is_set():
        return True
    
    try:
        await asyncio.wait_for(event.wait(), timeout=timeout)
        return True
    except asyncio.TimeoutError:
        return False


async def wait_until(
    predicate: Callable[[], bool],
    timeout: float,
    interval: float = 0.05,
) -> bool:
    """
    Poll a predicate until it holds or the timeout expires.
    
    Returns:
        True if the predicate held within the timeout
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    
    while True:
        if predicate():
            return True
        remaining = deadline - loop.time()
        if remaining <= 0:
            return False
        await asyncio.sleep(min(interval, remaining))
