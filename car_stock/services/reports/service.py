"""
Read-only reporting over committed sales, stock and payments.

Reports aggregate in SQL through the request's session and never write.
Permission checks happen at the API layer (REPORT_SALES, REPORT_STOCK, REPORT_FINANCE).
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from car_stock.core.logging import get_logger
from car_stock.database.errors import persistence_guard
from car_stock.database.models.payment import CAR_PAYMENT_TYPES, Payment, PaymentStatus
from car_stock.database.models.sale import Sale, SaleStatus
from car_stock.database.models.stock import Stock, StockStatus

logger = get_logger(__name__)

ZERO = Decimal("0.00")
REVENUE_STATUSES = (SaleStatus.COMPLETED, SaleStatus.DELIVERED)
OUTSTANDING_LIMIT = 50


def _decimal(value) -> Decimal:
    return Decimal(str(value if value is not None else 0)).quantize(Decimal("0.01"))


@dataclass
class SalesSummary:
    counts_by_status: Dict[SaleStatus, int] = field(default_factory=dict)
    total_revenue: Decimal = ZERO
    total_paid: Decimal = ZERO
    total_outstanding: Decimal = ZERO

    @property
    def total_sales(self) -> int:
        return sum(self.counts_by_status.values())


@dataclass
class StockSummary:
    counts_by_status: Dict[StockStatus, int] = field(default_factory=dict)
    available_value: Decimal = ZERO

    @property
    def total_units(self) -> int:
        return sum(self.counts_by_status.values())


@dataclass
class PaymentsSummary:
    total_payments: int = 0
    active_payments: int = 0
    voided_payments: int = 0
    active_amount: Decimal = ZERO
    voided_amount: Decimal = ZERO
    month_revenue: Decimal = ZERO


class ReportingService:
    """Aggregated views of sales, stock and payments for managers and accounting."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def sales_summary(self) -> SalesSummary:
        """Sales per status, revenue of completed sales, paid and outstanding totals."""
        summary = SalesSummary(counts_by_status={status: 0 for status in SaleStatus})

        with persistence_guard("report.sales_summary"):
            counts = await self.session.execute(
                select(Sale.status, func.count(Sale.id)).group_by(Sale.status)
            )
            for status, count in counts.all():
                summary.counts_by_status[SaleStatus(status)] = int(count)

            revenue = await self.session.execute(
                select(func.coalesce(func.sum(Sale.total_amount), 0)).where(
                    Sale.status.in_(REVENUE_STATUSES)
                )
            )
            summary.total_revenue = _decimal(revenue.scalar_one())

            balances = await self.session.execute(
                select(
                    func.coalesce(func.sum(Sale.paid_amount), 0),
                    func.coalesce(func.sum(Sale.remaining_amount), 0),
                ).where(Sale.status != SaleStatus.CANCELLED)
            )
            paid, outstanding = balances.one()
            summary.total_paid = _decimal(paid)
            summary.total_outstanding = _decimal(outstanding)

        logger.debug("Sales summary computed", total_sales=summary.total_sales)
        return summary

    async def stock_summary(self) -> StockSummary:
        """Units per stock status and the cost value of units still on the market."""
        summary = StockSummary(counts_by_status={status: 0 for status in StockStatus})

        with persistence_guard("report.stock_summary"):
            counts = await self.session.execute(
                select(Stock.status, func.count(Stock.id)).group_by(Stock.status)
            )
            for status, count in counts.all():
                summary.counts_by_status[StockStatus(status)] = int(count)

            value = await self.session.execute(
                select(func.coalesce(func.sum(Stock.cost_price), 0)).where(
                    Stock.status == StockStatus.AVAILABLE
                )
            )
            summary.available_value = _decimal(value.scalar_one())

        logger.debug("Stock summary computed", total_units=summary.total_units)
        return summary

    async def payments_summary(self, now: Optional[datetime] = None) -> PaymentsSummary:
        """Payment counts and amounts, plus active car payments received this month."""
        now = now or datetime.now(timezone.utc)
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        summary = PaymentsSummary()

        with persistence_guard("report.payments_summary"):
            rows = await self.session.execute(
                select(
                    Payment.status,
                    func.count(Payment.id),
                    func.coalesce(func.sum(Payment.amount), 0),
                ).group_by(Payment.status)
            )
            for status, count, amount in rows.all():
                summary.total_payments += int(count)
                if PaymentStatus(status) == PaymentStatus.ACTIVE:
                    summary.active_payments = int(count)
                    summary.active_amount = _decimal(amount)
                else:
                    summary.voided_payments = int(count)
                    summary.voided_amount = _decimal(amount)

            month = await self.session.execute(
                select(func.coalesce(func.sum(Payment.amount), 0)).where(
                    Payment.status == PaymentStatus.ACTIVE,
                    Payment.payment_type.in_(CAR_PAYMENT_TYPES),
                    Payment.created_at >= month_start,
                )
            )
            summary.month_revenue = _decimal(month.scalar_one())

        return summary

    async def outstanding_sales(self, limit: int = OUTSTANDING_LIMIT) -> List[Sale]:
        """Active sales that still have a balance to pay, newest first."""
        with persistence_guard("report.outstanding_sales"):
            result = await self.session.execute(
                select(Sale)
                .where(
                    Sale.status != SaleStatus.CANCELLED,
                    Sale.total_amount > Sale.paid_amount,
                )
                .order_by(Sale.created_at.desc())
                .limit(limit)
            )
            return list(result.scalars().all())
