"""Reporting response schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from car_stock.database.models.sale import SaleStatus
from car_stock.database.models.stock import StockStatus


class SalesSummaryResponse(BaseModel):
    counts_by_status: dict[SaleStatus, int]
    total_sales: int
    total_revenue: Decimal
    total_paid: Decimal
    total_outstanding: Decimal


class StockSummaryResponse(BaseModel):
    counts_by_status: dict[StockStatus, int]
    total_units: int
    available_value: Decimal


class PaymentsSummaryResponse(BaseModel):
    total_payments: int
    active_payments: int
    voided_payments: int
    active_amount: Decimal
    voided_amount: Decimal
    month_revenue: Decimal


class OutstandingSaleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    sale_number: str
    customer_id: UUID
    status: SaleStatus
    total_amount: Decimal
    paid_amount: Decimal
    remaining_amount: Decimal
    created_at: Optional[datetime] = None


class OutstandingSalesResponse(BaseModel):
    items: list[OutstandingSaleResponse]
    count: int
