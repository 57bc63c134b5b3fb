from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, TypeVar

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from waste_service.core.config import settings
from waste_service.core.errors import TransientStoreError
from waste_service.core.retry import with_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Connection-level failures only; constraint violations are not transient
TRANSIENT_DB_ERRORS = (OperationalError, InterfaceError)


async def run_store_op(
    session: AsyncSession,
    operation: Callable[[], Awaitable[T]],
    *,
    description: str,
) -> T:
    """Run a read or a write-and-commit against the store with bounded retry.

    ``operation`` must be safe to re-run from scratch: on a transient failure
    the session is rolled back before the next attempt.
    """

    async def attempt() -> T:
        try:
            return await operation()
        except TRANSIENT_DB_ERRORS as exc:
            await session.rollback()
            raise TransientStoreError(f"{description} failed: {exc.__class__.__name__}") from exc

    try:
        return await with_retry(
            attempt,
            attempts=settings.store_retry_attempts,
            timeout=settings.store_timeout_seconds,
            retry_on=(TransientStoreError,),
            backoff=settings.retry_backoff_seconds,
            description=description,
        )
    except asyncio.TimeoutError as exc:
        await session.rollback()
        raise TransientStoreError(f"{description} timed out") from exc


def dialect_insert(session: AsyncSession, table: Any):
    """``INSERT`` construct supporting ``on_conflict_do_update`` for the bound dialect."""
    name = session.get_bind().dialect.name
    if name == "postgresql":
        return postgresql.insert(table)
    if name == "sqlite":
        return sqlite.insert(table)
    raise NotImplementedError(f"Upsert is not supported on dialect {name!r}")


@asynccontextmanager
async def side_session(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """A separate session on the caller's bind for secondary effects.

    A failure (and its rollback) in here leaves the caller's loaded objects
    untouched.
    """
    async with AsyncSession(bind=session.bind, expire_on_commit=False, autoflush=False) as side:
        yield side
