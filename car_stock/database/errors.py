"""
Translation of SQLAlchemy failures into domain errors.

Repositories and the unit of work wrap persistence calls in
``persistence_guard`` so services only ever see the domain taxonomy:
version mismatches and unique violations become ``ConcurrentModificationError``,
connection-level failures become ``UnavailableError``. Anything else is a
programming error and propagates unchanged.
"""

from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
)
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm.exc import StaleDataError

from car_stock.core.errors import ConcurrentModificationError, UnavailableError
from car_stock.core.logging import get_logger

logger = get_logger(__name__)


@contextmanager
def persistence_guard(operation: str, **context: Any) -> Iterator[None]:
    """
    Map SQLAlchemy exceptions raised inside the block to domain errors.

    Args:
        operation: Short name of the persistence operation, used in logs
        **context: Identifiers attached to the raised error
    """
    try:
        yield
    except StaleDataError as e:
        logger.warning("Stale row detected", operation=operation, **context)
        raise ConcurrentModificationError(
            "Record was modified by another transaction",
            operation=operation,
            **context,
        ) from e
    except IntegrityError as e:
        logger.warning(
            "Integrity constraint violated",
            operation=operation,
            error=str(e.orig) if e.orig is not None else str(e),
            **context,
        )
        raise ConcurrentModificationError(
            "Conflicting write rejected by the database",
            operation=operation,
            **context,
        ) from e
    except (OperationalError, InterfaceError, PoolTimeoutError) as e:
        logger.error(
            "Database unavailable",
            operation=operation,
            error_type=type(e).__name__,
            **context,
        )
        raise UnavailableError(
            "Database is unavailable",
            operation=operation,
            **context,
        ) from e
    except DBAPIError as e:
        if e.connection_invalidated:
            logger.error("Database connection invalidated", operation=operation, **context)
            raise UnavailableError(
                "Database connection was lost",
                operation=operation,
                **context,
            ) from e
        raise
    except OSError as e:
        logger.error(
            "Database connection failed",
            operation=operation,
            error_type=type(e).__name__,
            **context,
        )
        raise UnavailableError(
            "Database is unavailable",
            operation=operation,
            **context,
        ) from e
