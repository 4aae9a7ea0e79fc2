"""
Unit of work and conflict retry.

A ``UnitOfWork`` owns one session and one transaction and exposes the
repositories every write path needs. Leaving the block without ``commit``
rolls back, so a failed validation never leaves partial writes.

``run_with_conflict_retry`` re-runs a whole unit of work once when it fails
with ``ConcurrentModificationError``. Each attempt opens a fresh unit of work,
so the retry re-reads and re-validates instead of replaying stale state.
``UnavailableError`` is never retried.
"""

from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from car_stock.core.errors import ConcurrentModificationError
from car_stock.core.logging import get_logger
from car_stock.database.connection import get_session_factory
from car_stock.database.errors import persistence_guard
from car_stock.services.audit import ActivityLogRepository
from car_stock.services.numbering import DocumentNumberGenerator
from car_stock.services.payments.repository import PaymentRepository
from car_stock.services.sales.repository import SaleRepository
from car_stock.services.stock.repository import StockRepository

logger = get_logger(__name__)

T = TypeVar("T")

CONFLICT_RETRIES = 1


class UnitOfWork:
    """Transaction boundary around the sale, stock and payment repositories."""

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None):
        self._session_factory = session_factory
        self._committed = False

    async def __aenter__(self) -> "UnitOfWork":
        factory = self._session_factory or get_session_factory()
        self.session = factory()
        self._committed = False
        self.sales = SaleRepository(self.session)
        self.stock = StockRepository(self.session)
        self.payments = PaymentRepository(self.session)
        self.numbers = DocumentNumberGenerator(self.session)
        self.audit = ActivityLogRepository(self.session)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            if not self._committed:
                await self._safe_rollback()
        finally:
            await self.session.close()

    async def commit(self) -> None:
        """
        Flush and commit.

        Raises:
            ConcurrentModificationError: A versioned row changed underneath us
                or a uniqueness rule rejected the write
            UnavailableError: The database could not be reached
        """
        try:
            with persistence_guard("commit"):
                await self.session.commit()
        except Exception:
            await self._safe_rollback()
            raise
        self._committed = True

    async def _safe_rollback(self) -> None:
        try:
            await self.session.rollback()
        except SQLAlchemyError as e:
            logger.warning(
                "Rollback failed, connection will be discarded",
                error=str(e),
                error_type=type(e).__name__,
            )


UnitOfWorkFactory = Callable[[], UnitOfWork]


async def run_with_conflict_retry(
    operation: Callable[[], Awaitable[T]],
    name: str,
    retries: int = CONFLICT_RETRIES,
    **log_context,
) -> T:
    """
    Run ``operation``, retrying it after a concurrent modification.

    Args:
        operation: Coroutine factory performing one complete unit of work
        name: Operation name for logs
        retries: Extra attempts after the first conflict

    Raises:
        ConcurrentModificationError: Still conflicting after the retries
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except ConcurrentModificationError:
            if attempt >= retries:
                logger.warning(
                    "Concurrent modification persisted after retry",
                    operation=name,
                    attempts=attempt + 1,
                    **log_context,
                )
                raise
            attempt += 1
            logger.info(
                "Concurrent modification, re-reading and retrying",
                operation=name,
                attempt=attempt,
                **log_context,
            )
