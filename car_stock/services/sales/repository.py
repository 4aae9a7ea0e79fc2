"""
Sale data access repository.

Row reads used for decisions are taken with ``SELECT ... FOR UPDATE`` so the
lifecycle service validates against the same state it writes. SQLAlchemy
failures are translated to domain errors by ``persistence_guard``.
"""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from car_stock.core.errors import NotFoundError
from car_stock.core.logging import get_logger
from car_stock.database.errors import persistence_guard
from car_stock.database.models.customer import Customer
from car_stock.database.models.sale import (
    Sale,
    SaleHistoryAction,
    SaleStatus,
    SaleStatusHistory,
)

logger = get_logger(__name__)


class SaleRepository:
    """Repository for sales and their status history."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, sale_id: uuid.UUID) -> Optional[Sale]:
        with persistence_guard("sale.get", sale_id=sale_id):
            return await self.session.get(Sale, sale_id)

    async def get_for_update(self, sale_id: uuid.UUID) -> Sale:
        """
        Load a sale and lock its row until the transaction ends.

        Raises:
            NotFoundError: No sale with this id
        """
        with persistence_guard("sale.get_for_update", sale_id=sale_id):
            result = await self.session.execute(
                select(Sale).where(Sale.id == sale_id).with_for_update()
            )
            sale = result.scalar_one_or_none()

        if sale is None:
            raise NotFoundError("Sale not found", sale_id=sale_id)
        return sale

    async def find_active_holder_id(
        self,
        stock_id: uuid.UUID,
        exclude_sale_id: Optional[uuid.UUID] = None,
    ) -> Optional[uuid.UUID]:
        """Id of a non-cancelled sale linked to ``stock_id``, other than the excluded one."""
        stmt = select(Sale.id).where(
            Sale.stock_id == stock_id,
            Sale.status != SaleStatus.CANCELLED,
        )
        if exclude_sale_id is not None:
            stmt = stmt.where(Sale.id != exclude_sale_id)

        with persistence_guard("sale.find_active_holder", stock_id=stock_id):
            result = await self.session.execute(stmt.limit(1))
            return result.scalar_one_or_none()

    async def customer_exists(self, customer_id: uuid.UUID) -> bool:
        with persistence_guard("customer.exists", customer_id=customer_id):
            result = await self.session.execute(
                select(Customer.id).where(Customer.id == customer_id)
            )
            return result.scalar_one_or_none() is not None

    def add(self, sale: Sale) -> Sale:
        self.session.add(sale)
        return sale

    def add_history(
        self,
        sale_id: uuid.UUID,
        action: SaleHistoryAction,
        to_status: SaleStatus,
        from_status: Optional[SaleStatus] = None,
        changed_by: Optional[uuid.UUID] = None,
        notes: Optional[str] = None,
    ) -> SaleStatusHistory:
        entry = SaleStatusHistory(
            sale_id=sale_id,
            action=action,
            from_status=from_status,
            to_status=to_status,
            changed_by=changed_by,
            notes=notes,
        )
        self.session.add(entry)
        return entry
