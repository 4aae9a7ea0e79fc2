"""Stock data access repository."""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from car_stock.core.errors import NotFoundError
from car_stock.database.errors import persistence_guard
from car_stock.database.models.stock import Stock


class StockRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_for_update(self, stock_id: uuid.UUID) -> Optional[Stock]:
        """Load a stock unit and lock its row; None if it does not exist."""
        with persistence_guard("stock.get_for_update", stock_id=stock_id):
            result = await self.session.execute(
                select(Stock).where(Stock.id == stock_id).with_for_update()
            )
            return result.scalar_one_or_none()

    async def require_for_update(self, stock_id: uuid.UUID) -> Stock:
        """
        Like ``get_for_update`` but the unit must exist.

        Raises:
            NotFoundError: No stock unit with this id
        """
        stock = await self.get_for_update(stock_id)
        if stock is None:
            raise NotFoundError("Stock unit not found", stock_id=stock_id)
        return stock
