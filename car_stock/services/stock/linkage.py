"""
Stock linkage rule.

A stock unit's status is a function of the status of the one active sale
holding it:

    DRAFT, RESERVED  -> RESERVED
    CONTRACTED       -> PREPARING
    COMPLETED        -> SOLD
    DELIVERED        -> SOLD
    CANCELLED        -> AVAILABLE (only if no other active sale holds it)

The rule is split into ``plan_*`` methods, which only read and raise, and
``apply`` which mutates the stock row. Callers plan before they mutate
anything so a rejected transition leaves no partial state behind.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from car_stock.core.errors import LinkageConflictError
from car_stock.core.logging import get_logger
from car_stock.database.models.sale import SaleStatus
from car_stock.database.models.stock import StockStatus

logger = get_logger(__name__)

SALE_TO_STOCK_STATUS: Dict[SaleStatus, StockStatus] = {
    SaleStatus.DRAFT: StockStatus.RESERVED,
    SaleStatus.RESERVED: StockStatus.RESERVED,
    SaleStatus.CONTRACTED: StockStatus.PREPARING,
    SaleStatus.COMPLETED: StockStatus.SOLD,
    SaleStatus.DELIVERED: StockStatus.SOLD,
    SaleStatus.CANCELLED: StockStatus.AVAILABLE,
}


class StockLinkageRule:
    """Keeps a stock unit's status consistent with its holding sale."""

    def stock_status_for(self, sale_status: SaleStatus) -> StockStatus:
        return SALE_TO_STOCK_STATUS[sale_status]

    def plan(
        self,
        stock: Any,
        sale_id: uuid.UUID,
        sale_status: SaleStatus,
        holder_sale_id: Optional[uuid.UUID] = None,
    ) -> Optional[StockStatus]:
        """
        Work out the stock status an already linked sale implies.

        Args:
            stock: Stock row linked to the sale
            sale_id: Sale whose status is changing
            sale_status: Status the sale is moving to
            holder_sale_id: Another active sale holding the unit, if any

        Returns:
            Status to write, or None when the stock must be left untouched

        Raises:
            LinkageConflictError: The unit is held by a different active sale
        """
        held_elsewhere = holder_sale_id is not None and holder_sale_id != sale_id

        if sale_status == SaleStatus.CANCELLED:
            if held_elsewhere:
                logger.warning(
                    "Cancelled sale does not hold its stock, leaving stock untouched",
                    sale_id=str(sale_id),
                    stock_id=str(stock.id),
                    holder_sale_id=str(holder_sale_id),
                )
                return None
            return StockStatus.AVAILABLE

        if held_elsewhere:
            raise LinkageConflictError(
                "Stock unit is held by another active sale",
                stock_id=stock.id,
                sale_id=sale_id,
                holder_sale_id=holder_sale_id,
            )

        return self.stock_status_for(sale_status)

    def plan_new_link(
        self,
        stock: Any,
        sale_id: uuid.UUID,
        sale_status: SaleStatus,
        holder_sale_id: Optional[uuid.UUID] = None,
    ) -> StockStatus:
        """
        Check that a sale may take a unit it does not hold yet.

        Raises:
            LinkageConflictError: Held by another active sale or not AVAILABLE
        """
        if sale_status == SaleStatus.CANCELLED:
            raise LinkageConflictError(
                "Cannot link stock to a cancelled sale",
                stock_id=stock.id,
                sale_id=sale_id,
            )

        if holder_sale_id is not None and holder_sale_id != sale_id:
            raise LinkageConflictError(
                "Stock unit is held by another active sale",
                stock_id=stock.id,
                sale_id=sale_id,
                holder_sale_id=holder_sale_id,
            )

        if stock.status != StockStatus.AVAILABLE:
            raise LinkageConflictError(
                "Stock unit is not available",
                stock_id=stock.id,
                sale_id=sale_id,
                stock_status=stock.status,
            )

        return self.stock_status_for(sale_status)

    def apply(
        self,
        stock: Any,
        target_status: StockStatus,
        sale_total: Optional[Any] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Write ``target_status`` onto the stock row.

        Returns:
            True if the row changed
        """
        if stock.status == target_status:
            return False

        now = now or datetime.now(timezone.utc)
        previous = stock.status
        stock.status = target_status

        if target_status == StockStatus.AVAILABLE:
            stock.reserved_at = None
            stock.sold_at = None
            stock.actual_sale_price = None
        elif target_status == StockStatus.RESERVED:
            stock.reserved_at = now
        elif target_status == StockStatus.SOLD:
            stock.sold_at = now
            if sale_total is not None:
                stock.actual_sale_price = sale_total

        logger.info(
            "Stock status updated",
            stock_id=str(stock.id),
            from_status=previous.value if previous is not None else None,
            to_status=target_status.value,
        )
        return True

    def apply_linkage(
        self,
        stock: Any,
        sale: Any,
        sale_status: SaleStatus,
        holder_sale_id: Optional[uuid.UUID] = None,
        now: Optional[datetime] = None,
    ) -> Any:
        """
        Plan and apply in one step.

        Raises:
            LinkageConflictError: The unit is held by a different active sale
        """
        target = self.plan(stock, sale.id, sale_status, holder_sale_id)
        if target is not None:
            self.apply(stock, target, sale_total=sale.total_amount, now=now)
        return stock
