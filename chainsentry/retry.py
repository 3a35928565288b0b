"""Fixed-delay retry for remote calls.

Every remote lookup in the fetch layer goes through `retry_async`: up to
`attempts` tries, a constant `delay` between them, no jitter and no
exponential growth. What happens after the last failure is chosen per call
site: most return a fallback value, signature lookups re-raise.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
F = TypeVar("F")


class SoftFailure(Exception):
    """Raised internally when a call returned but its result counts as a failed attempt."""


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int = 3,
    delay: float = 1.0,
    fallback: Callable[[], F] | None = None,
    propagate: bool = False,
    is_soft_failure: Callable[[T], bool] | None = None,
    on_exhausted: Callable[[BaseException], object] | None = None,
    description: str = "remote call",
) -> T | F | None:
    """
    Run `operation` until it succeeds or `attempts` are used up.

    Args:
        operation: Zero-argument coroutine factory; called once per attempt.
        attempts: Maximum number of attempts (>= 1).
        delay: Seconds to sleep between attempts.
        fallback: Produces the return value after the final failure.
        propagate: Re-raise the last exception instead of falling back.
        is_soft_failure: Predicate over a successful result that marks it
            as a failed attempt (e.g. an explorer "NOTOK" body).
        on_exhausted: Called with the last exception before falling back.
        description: Used in log lines.

    Returns:
        The first successful result, or `fallback()` (None without one).

    Raises:
        ValueError: `attempts` is less than 1.
    """
    if attempts < 1:
        raise ValueError(f"attempts must be >= 1, got {attempts}")

    last_exc: BaseException | None = None

    for attempt in range(1, attempts + 1):
        try:
            result = await operation()
            if is_soft_failure is not None and is_soft_failure(result):
                raise SoftFailure(f"{description}: soft failure response")
            return result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            last_exc = e
            if attempt < attempts:
                logger.warning("%s failed (attempt %d): %s; retrying", description, attempt, e)
                await asyncio.sleep(delay)
            else:
                logger.warning("%s failed (final attempt): %s; skipping", description, e)

    if propagate:
        raise last_exc
    if on_exhausted is not None:
        on_exhausted(last_exc)
    return fallback() if fallback is not None else None
