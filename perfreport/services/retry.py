# perfreport/services/retry.py
import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from ..errors import PipelineCancelled, RateLimitError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


async def retry_on_rate_limit(
    step: Callable[[], Awaitable[T]],
    *,
    delay: float = 1.0,
    max_retries: Optional[int] = None,
    sleep: Sleep = asyncio.sleep,
    cancel_event: Optional[asyncio.Event] = None,
    label: str = "",
) -> T:
    """
    Await `step()` until it stops raising RateLimitError.

    Waits `delay` seconds between attempts. `max_retries=None` retries
    forever, otherwise the last RateLimitError is re-raised once the budget
    is spent. Any other exception propagates on the first occurrence.

    The cancel event is checked before every attempt and after every wait,
    so a cancelled caller is released within one `delay`.
    """
    retries = 0
    while True:
        if cancel_event is not None and cancel_event.is_set():
            raise PipelineCancelled(f"Cancelled while processing {label or 'step'}")
        try:
            return await step()
        except RateLimitError:
            if max_retries is not None and retries >= max_retries:
                raise
            retries += 1
            logger.info("Rate limit reached. Waiting %.1fs before retry %d for %s", delay, retries, label or "step")
            await sleep(delay)
