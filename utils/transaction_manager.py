import logging
import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Awaitable, Optional, TypeVar
from functools import wraps
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import config
from db import get_db_session, session_commit, session_rollback
from exceptions.pricing import ConcurrentModificationException, StoreUnavailableException

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StaleWriteError(Exception):
    """
    Raised by repositories when a compare-and-swap update matched no row.

    Internal signal only: `with_retry` turns it into a fresh attempt and,
    once attempts are exhausted, into ConcurrentModificationException.
    """

    def __init__(self, entity: str, entity_id: int | str):
        super().__init__(f"Stale write on {entity} {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class TransactionManager:
    """
    Utility class for managing database transactions with bounded waits,
    rollback on failure, and retry of optimistic-concurrency conflicts.
    """

    @staticmethod
    @asynccontextmanager
    async def atomic_transaction(
        timeout: Optional[float] = None,
        maker: Optional[async_sessionmaker] = None
    ) -> AsyncGenerator[AsyncSession, None]:
        """
        Context manager for atomic database transactions with timeout protection.

        The connection must be acquired within `timeout` seconds, otherwise the
        whole operation fails with StoreUnavailableException. Everything done
        inside the block is committed together or rolled back together.

        Usage:
            async with TransactionManager.atomic_transaction() as session:
                await DiscountRuleRepository.mark_used(rule_id, version, session)
                await OrderTotalsRepository.create_snapshot(reference, totals, session)
        """
        timeout = timeout or config.STORE_TRANSACTION_TIMEOUT_SECONDS

        async with get_db_session(maker) as session:
            try:
                await asyncio.wait_for(session.connection(), timeout=timeout)
            except (asyncio.TimeoutError, SQLAlchemyError) as e:
                logger.error(f"[Transaction] Could not acquire connection within {timeout}s: {e!r}")
                raise StoreUnavailableException("transaction begin", type(e).__name__) from e

            transaction_start = datetime.utcnow()
            logger.debug(f"[Transaction] Started at {transaction_start}")

            try:
                yield session

                duration = (datetime.utcnow() - transaction_start).total_seconds()
                if duration > timeout:
                    logger.warning(f"[Transaction] Exceeded timeout: {duration:.2f}s > {timeout}s")

                await session_commit(session)
                logger.debug(f"[Transaction] Committed in {duration:.2f}s")
            except BaseException as e:
                try:
                    await session_rollback(session)
                    logger.info(f"[Transaction] Rolled back due to {type(e).__name__}")
                except SQLAlchemyError as rollback_error:
                    logger.critical(f"[Transaction] Failed to rollback: {rollback_error!r}")
                if isinstance(e, SQLAlchemyError):
                    raise StoreUnavailableException("transaction commit", type(e).__name__) from e
                raise

    @staticmethod
    async def run_store_operation(
        operation: str,
        awaitable: Awaitable[T],
        timeout: Optional[float] = None
    ) -> T:
        """
        Await a store read/write with a bounded wait.

        Store errors and timeouts become StoreUnavailableException: discount and
        gift card state must never be resolved from a half-read store.

        Args:
            operation: Short label for logs (e.g. "discount lookup")
            awaitable: Repository coroutine
            timeout: Seconds to wait, defaults to STORE_TRANSACTION_TIMEOUT_SECONDS
        """
        timeout = timeout or config.STORE_TRANSACTION_TIMEOUT_SECONDS
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"[Store] {operation} timed out after {timeout}s")
            raise StoreUnavailableException(operation, "timeout") from e
        except SQLAlchemyError as e:
            logger.error(f"[Store] {operation} failed: {e!r}")
            raise StoreUnavailableException(operation, type(e).__name__) from e

    @staticmethod
    def with_retry(max_retries: Optional[int] = None, delay_base: Optional[float] = None):
        """
        Decorator retrying a whole read-decide-write cycle after a lost compare-and-swap.

        The decorated coroutine must open its own transaction so each attempt
        re-reads current state. Other exceptions are not retried.

        Args:
            max_retries: Maximum number of retry attempts
            delay_base: Base delay for exponential backoff
        """
        max_retries = max_retries or config.CONCURRENCY_MAX_RETRIES
        delay_base = delay_base or config.CONCURRENCY_RETRY_DELAY_SECONDS

        def decorator(func):
            @wraps(func)
            async def wrapper(*args, **kwargs) -> Any:
                last_conflict = None

                for attempt in range(max_retries + 1):
                    try:
                        return await func(*args, **kwargs)
                    except StaleWriteError as e:
                        last_conflict = e

                        if attempt == max_retries:
                            logger.error(
                                f"[Transaction] {func.__name__} lost {max_retries + 1} races on "
                                f"{e.entity} {e.entity_id}, giving up"
                            )
                            break

                        # Exponential backoff with jitter
                        delay = delay_base * (2 ** attempt) + (delay_base * 0.1 * attempt)
                        logger.warning(
                            f"[Transaction] Attempt {attempt + 1} of {func.__name__} lost race on "
                            f"{e.entity} {e.entity_id}, retrying in {delay:.2f}s"
                        )
                        await asyncio.sleep(delay)

                raise ConcurrentModificationException(
                    last_conflict.entity, last_conflict.entity_id, attempts=max_retries + 1
                ) from last_conflict

            return wrapper
        return decorator
