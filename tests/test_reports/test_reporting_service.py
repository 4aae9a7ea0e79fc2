"""
Tests for ReportingService aggregation against a mocked session.
"""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import select
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError

from car_stock.core.errors import UnavailableError
from car_stock.database.models.payment import PaymentStatus
from car_stock.database.models.sale import Sale, SaleStatus
from car_stock.database.models.stock import StockStatus
from car_stock.services.reports.service import ReportingService


def compiled(statement) -> str:
    return str(statement.compile(dialect=postgresql.dialect()))


def result_with(**attrs) -> MagicMock:
    result = MagicMock()
    for name, value in attrs.items():
        getattr(result, name).return_value = value
    return result


@pytest.fixture
def session() -> AsyncMock:
    return AsyncMock()


class TestSalesSummary:
    @pytest.mark.asyncio
    async def test_counts_and_totals(self, session) -> None:
        session.execute.side_effect = [
            result_with(all=[("RESERVED", 3), ("COMPLETED", 2), ("CANCELLED", 1)]),
            result_with(scalar_one=Decimal("1300000")),
            result_with(one=(Decimal("900000.5"), Decimal("1100000"))),
        ]

        summary = await ReportingService(session).sales_summary()

        assert summary.counts_by_status[SaleStatus.RESERVED] == 3
        assert summary.counts_by_status[SaleStatus.DRAFT] == 0
        assert summary.total_sales == 6
        assert summary.total_revenue == Decimal("1300000.00")
        assert summary.total_paid == Decimal("900000.50")
        assert summary.total_outstanding == Decimal("1100000.00")
        assert session.execute.await_count == 3

    @pytest.mark.asyncio
    async def test_empty_database(self, session) -> None:
        session.execute.side_effect = [
            result_with(all=[]),
            result_with(scalar_one=0),
            result_with(one=(0, 0)),
        ]

        summary = await ReportingService(session).sales_summary()

        assert summary.total_sales == 0
        assert set(summary.counts_by_status) == set(SaleStatus)
        assert summary.total_revenue == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_outstanding_ignores_overpaid_sales(self, session) -> None:
        session.execute.side_effect = [
            result_with(all=[]),
            result_with(scalar_one=0),
            result_with(one=(Decimal("150000"), Decimal("100000"))),
        ]

        await ReportingService(session).sales_summary()

        sql = compiled(session.execute.await_args_list[2].args[0])
        assert "CASE WHEN" in sql
        assert "sales.total_amount > sales.paid_amount" in sql
        assert "sum(sales.total_amount - sales.paid_amount)" not in sql

    @pytest.mark.asyncio
    async def test_database_down(self, session) -> None:
        session.execute.side_effect = OperationalError("SELECT", {}, Exception("refused"))

        with pytest.raises(UnavailableError):
            await ReportingService(session).sales_summary()


class TestPaymentsSummary:
    @pytest.mark.asyncio
    async def test_active_and_voided(self, session) -> None:
        session.execute.side_effect = [
            result_with(
                all=[
                    (PaymentStatus.ACTIVE, 4, Decimal("250000")),
                    (PaymentStatus.VOIDED, 1, Decimal("5000")),
                ]
            ),
            result_with(scalar_one=Decimal("120000")),
        ]

        summary = await ReportingService(session).payments_summary(
            now=datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
        )

        assert summary.total_payments == 5
        assert summary.active_payments == 4
        assert summary.voided_payments == 1
        assert summary.active_amount == Decimal("250000.00")
        assert summary.voided_amount == Decimal("5000.00")
        assert summary.month_revenue == Decimal("120000.00")

    @pytest.mark.asyncio
    async def test_no_payments(self, session) -> None:
        session.execute.side_effect = [result_with(all=[]), result_with(scalar_one=None)]

        summary = await ReportingService(session).payments_summary()

        assert summary.total_payments == 0
        assert summary.month_revenue == Decimal("0.00")


class TestOutstandingSales:
    @pytest.mark.asyncio
    async def test_returns_sales(self, session, make_sale) -> None:
        sales = [make_sale(SaleStatus.CONTRACTED), make_sale(SaleStatus.RESERVED)]
        result = MagicMock()
        result.scalars.return_value.all.return_value = sales
        session.execute.return_value = result

        outstanding = await ReportingService(session).outstanding_sales(limit=10)

        assert outstanding == sales
        session.execute.assert_awaited_once()


class TestRemainingAmount:
    def test_balance_owed(self) -> None:
        sale = Sale(total_amount=Decimal("100000.00"), paid_amount=Decimal("30000.00"))

        assert sale.remaining_amount == Decimal("70000.00")

    def test_overpaid_sale_owes_nothing(self) -> None:
        sale = Sale(total_amount=Decimal("100000.00"), paid_amount=Decimal("150000.00"))

        assert sale.remaining_amount == Decimal("0.00")

    def test_sql_expression_is_clamped(self) -> None:
        sql = str(
            select(Sale.remaining_amount).compile(
                dialect=postgresql.dialect(), compile_kwargs={"literal_binds": True}
            )
        )

        assert sql.startswith("SELECT CASE WHEN")
        assert "ELSE 0" in sql


class TestStockSummary:
    @pytest.mark.asyncio
    async def test_counts_and_value(self, session) -> None:
        session.execute.side_effect = [
            result_with(
                all=[
                    (StockStatus.AVAILABLE, 4),
                    ("RESERVED", 2),
                    (StockStatus.SOLD, 7),
                ]
            ),
            result_with(scalar_one=Decimal("3200000")),
        ]

        summary = await ReportingService(session).stock_summary()

        assert summary.counts_by_status[StockStatus.AVAILABLE] == 4
        assert summary.counts_by_status[StockStatus.RESERVED] == 2
        assert summary.counts_by_status[StockStatus.PREPARING] == 0
        assert summary.total_units == 13
        assert summary.available_value == Decimal("3200000.00")
        assert "GROUP BY stock.status" in compiled(session.execute.await_args_list[0].args[0])

    @pytest.mark.asyncio
    async def test_empty_lot(self, session) -> None:
        session.execute.side_effect = [result_with(all=[]), result_with(scalar_one=None)]

        summary = await ReportingService(session).stock_summary()

        assert summary.total_units == 0
        assert set(summary.counts_by_status) == set(StockStatus)
        assert summary.available_value == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_database_down(self, session) -> None:
        session.execute.side_effect = OperationalError("SELECT", {}, Exception("refused"))

        with pytest.raises(UnavailableError):
            await ReportingService(session).stock_summary()
