"""
Payment data access repository.

Active totals are aggregated in SQL and only include the car payment types,
matching ``car_stock.services.payments.ledger.active_sum``.
"""

import uuid
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from car_stock.core.errors import NotFoundError
from car_stock.core.logging import get_logger
from car_stock.database.errors import persistence_guard
from car_stock.database.models.payment import (
    CAR_PAYMENT_TYPES,
    Payment,
    PaymentStatus,
)

logger = get_logger(__name__)


class PaymentRepository:
    """Repository for payments."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_for_update(self, payment_id: uuid.UUID) -> Payment:
        """
        Load a payment and lock its row.

        Raises:
            NotFoundError: No payment with this id
        """
        with persistence_guard("payment.get_for_update", payment_id=payment_id):
            result = await self.session.execute(
                select(Payment).where(Payment.id == payment_id).with_for_update()
            )
            payment = result.scalar_one_or_none()

        if payment is None:
            raise NotFoundError("Payment not found", payment_id=payment_id)
        return payment

    async def list_for_sale(
        self,
        sale_id: uuid.UUID,
        status: Optional[PaymentStatus] = None,
    ) -> List[Payment]:
        stmt = select(Payment).where(Payment.sale_id == sale_id)
        if status is not None:
            stmt = stmt.where(Payment.status == status)

        with persistence_guard("payment.list_for_sale", sale_id=sale_id):
            result = await self.session.execute(stmt.order_by(Payment.created_at))
            return list(result.scalars().all())

    async def get_active_totals(self, sale_id: uuid.UUID) -> Tuple[int, Decimal]:
        """Count and sum of the active car payments of a sale."""
        stmt = select(
            func.count(Payment.id),
            func.coalesce(func.sum(Payment.amount), 0),
        ).where(
            Payment.sale_id == sale_id,
            Payment.status == PaymentStatus.ACTIVE,
            Payment.payment_type.in_(CAR_PAYMENT_TYPES),
        )

        with persistence_guard("payment.get_active_totals", sale_id=sale_id):
            result = await self.session.execute(stmt)
            count, total = result.one()

        return int(count), Decimal(str(total)).quantize(Decimal("0.01"))

    def add(self, payment: Payment) -> Payment:
        self.session.add(payment)
        return payment
