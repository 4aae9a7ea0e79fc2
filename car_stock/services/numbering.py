"""
Human readable document numbers.

Sale numbers restart every year (``SL-2026-0001``), receipt numbers every
month (``RCPT-2610-0001``). Counters live in ``number_sequences`` and are
incremented under a row lock inside the caller's transaction, so a number is
only consumed when the document that uses it is committed.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from car_stock.core.config import get_settings
from car_stock.database.errors import persistence_guard
from car_stock.database.models.number_sequence import NumberSequence

YEARLY = 0


def format_sale_number(prefix: str, year: int, number: int) -> str:
    return f"{prefix}-{year}-{number:04d}"


def format_receipt_number(prefix: str, year: int, month: int, number: int) -> str:
    return f"{prefix}-{year % 100:02d}{month:02d}-{number:04d}"


class DocumentNumberGenerator:
    """Issues the next sale and receipt numbers within a session."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.settings = get_settings()

    async def next_value(self, prefix: str, year: int, month: int = YEARLY) -> int:
        """Increment and return the counter for ``prefix`` in the period."""
        with persistence_guard("number_sequence.next", prefix=prefix, year=year, month=month):
            result = await self.session.execute(
                select(NumberSequence)
                .where(
                    NumberSequence.prefix == prefix,
                    NumberSequence.year == year,
                    NumberSequence.month == month,
                )
                .with_for_update()
            )
            sequence = result.scalar_one_or_none()

            if sequence is None:
                sequence = NumberSequence(prefix=prefix, year=year, month=month, last_number=0)
                self.session.add(sequence)

            sequence.last_number += 1
            await self.session.flush()

        return sequence.last_number

    async def next_sale_number(self, now: Optional[datetime] = None) -> str:
        now = now or datetime.now(timezone.utc)
        prefix = self.settings.sale_number_prefix
        number = await self.next_value(prefix, now.year)
        return format_sale_number(prefix, now.year, number)

    async def next_receipt_number(self, now: Optional[datetime] = None) -> str:
        now = now or datetime.now(timezone.utc)
        prefix = self.settings.receipt_number_prefix
        number = await self.next_value(prefix, now.year, now.month)
        return format_receipt_number(prefix, now.year, now.month, number)
