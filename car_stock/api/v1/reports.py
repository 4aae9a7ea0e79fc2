"""
Reporting API endpoints. Read-only.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from car_stock.api.deps import Reports, require_permission
from car_stock.schemas.reports import (
    OutstandingSaleResponse,
    OutstandingSalesResponse,
    PaymentsSummaryResponse,
    SalesSummaryResponse,
    StockSummaryResponse,
)
from car_stock.services.auth.permissions import Action, Actor
from car_stock.services.reports.service import OUTSTANDING_LIMIT

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/sales-summary", response_model=SalesSummaryResponse)
async def sales_summary(
    reports: Reports,
    actor: Annotated[Actor, Depends(require_permission(Action.REPORT_SALES))],
) -> SalesSummaryResponse:
    summary = await reports.sales_summary()
    return SalesSummaryResponse(
        counts_by_status=summary.counts_by_status,
        total_sales=summary.total_sales,
        total_revenue=summary.total_revenue,
        total_paid=summary.total_paid,
        total_outstanding=summary.total_outstanding,
    )


@router.get("/stock-summary", response_model=StockSummaryResponse)
async def stock_summary(
    reports: Reports,
    actor: Annotated[Actor, Depends(require_permission(Action.REPORT_STOCK))],
) -> StockSummaryResponse:
    summary = await reports.stock_summary()
    return StockSummaryResponse(
        counts_by_status=summary.counts_by_status,
        total_units=summary.total_units,
        available_value=summary.available_value,
    )


@router.get("/payments-summary", response_model=PaymentsSummaryResponse)
async def payments_summary(
    reports: Reports,
    actor: Annotated[Actor, Depends(require_permission(Action.REPORT_FINANCE))],
) -> PaymentsSummaryResponse:
    summary = await reports.payments_summary()
    return PaymentsSummaryResponse(
        total_payments=summary.total_payments,
        active_payments=summary.active_payments,
        voided_payments=summary.voided_payments,
        active_amount=summary.active_amount,
        voided_amount=summary.voided_amount,
        month_revenue=summary.month_revenue,
    )


@router.get("/outstanding", response_model=OutstandingSalesResponse)
async def outstanding_sales(
    reports: Reports,
    actor: Annotated[Actor, Depends(require_permission(Action.REPORT_FINANCE))],
    limit: Annotated[int, Query(ge=1, le=200)] = OUTSTANDING_LIMIT,
) -> OutstandingSalesResponse:
    sales = await reports.outstanding_sales(limit=limit)
    items = [OutstandingSaleResponse.model_validate(sale) for sale in sales]
    return OutstandingSalesResponse(items=items, count=len(items))
