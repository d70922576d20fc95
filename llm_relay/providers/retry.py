"""Bounded retry with exponential backoff for opening a stream.

Only the connection step goes through here. Once a stream is open, frames
are never re-requested: a restart would duplicate output the caller has
already seen.
"""

import asyncio
import logging
import random
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from email.utils import parsedate_to_datetime
from typing import TypeVar

from llm_relay.config.settings import get_settings
from llm_relay.providers.errors import TransientTransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Values above this are read as a unix timestamp rather than delta-seconds
_EPOCH_THRESHOLD = 1_000_000_000


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    jitter: bool = True

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("Retry delays must be non-negative")

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        settings = get_settings()
        return cls(
            max_retries=settings.retry_max_retries,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
            jitter=settings.retry_jitter,
        )

    def delay_for(self, retry_index: int, retry_after: float | None = None) -> float:
        """Seconds to wait before retry number ``retry_index`` (0-based)."""
        if retry_after is not None:
            return min(max(retry_after, 0.0), self.max_delay)
        backoff = min(self.base_delay * (2 ** retry_index), self.max_delay)
        return random.uniform(0, backoff) if self.jitter else backoff


def parse_retry_after(value: str | None, now: float | None = None) -> float | None:
    """Parse a retry-after header: delta-seconds, unix timestamp or HTTP-date."""
    if not value:
        return None
    now = time.time() if now is None else now
    try:
        seconds = float(value)
    except ValueError:
        try:
            return max(parsedate_to_datetime(value).timestamp() - now, 0.0)
        except (TypeError, ValueError):
            return None
    if seconds > _EPOCH_THRESHOLD:
        return max(seconds - now, 0.0)
    return max(seconds, 0.0)


async def with_retry(
    connect: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await ``connect()``, retrying transient failures per ``policy``.

    Anything other than TransientTransportError propagates at once. When
    retries run out the last transient error is re-raised unchanged.
    """
    retry_index = 0
    while True:
        try:
            return await connect()
        except TransientTransportError as e:
            if retry_index >= policy.max_retries:
                raise
            delay = policy.delay_for(retry_index, e.retry_after)
            retry_index += 1
            logger.warning(
                "Transient upstream failure, retrying",
                extra={"audit_data": {
                    "retry": retry_index,
                    "max_retries": policy.max_retries,
                    "delay_s": round(delay, 3),
                    "status_code": e.status_code,
                    "error": e.detail,
                }},
            )
            await sleep(delay)
