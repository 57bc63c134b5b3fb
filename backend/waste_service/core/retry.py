from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int,
    timeout: float,
    retry_on: Tuple[Type[BaseException], ...],
    backoff: float = 0.2,
    description: str = "operation",
) -> T:
    """Run ``operation`` with a per-attempt timeout and bounded retries.

    Only exceptions listed in ``retry_on`` (and timeouts) are retried; the
    last one is re-raised once ``attempts`` is exhausted. Backoff doubles
    after each failed attempt.
    """
    attempts = max(1, attempts)
    delay = backoff
    for attempt in range(1, attempts + 1):
        try:
            return await asyncio.wait_for(operation(), timeout=timeout)
        except (asyncio.TimeoutError, *retry_on) as exc:
            if attempt == attempts:
                logger.warning(
                    "Retries exhausted",
                    extra={"operation": description, "attempts": attempts, "error": repr(exc)},
                )
                raise
            logger.info(
                "Retrying after failure",
                extra={"operation": description, "attempt": attempt, "error": repr(exc)},
            )
            await asyncio.sleep(delay)
            delay *= 2
    raise RuntimeError("unreachable")  # pragma: no cover
