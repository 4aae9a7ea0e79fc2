"""
Payment API endpoints: record, void and view a sale's ledger.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status

from car_stock.api.deps import Payments, require_permission
from car_stock.core.logging import get_logger
from car_stock.schemas.payments import (
    LedgerAlertResponse,
    LedgerResponse,
    PaymentCreateRequest,
    PaymentResponse,
    PaymentResultResponse,
    PaymentVoidRequest,
)
from car_stock.services.auth.permissions import Action, Actor
from car_stock.services.payments.service import PaymentResult

logger = get_logger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


def _to_response(result: PaymentResult) -> PaymentResultResponse:
    return PaymentResultResponse(
        payment=PaymentResponse.model_validate(result.payment),
        sale_status=result.sale.status,
        sale_paid_amount=result.sale.paid_amount,
        alerts=[LedgerAlertResponse.model_validate(alert) for alert in result.alerts],
    )


@router.post(
    "",
    response_model=PaymentResultResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record payment",
)
async def record_payment(
    payload: PaymentCreateRequest,
    service: Payments,
    actor: Annotated[Actor, Depends(require_permission(Action.PAYMENT_CREATE))],
) -> PaymentResultResponse:
    result = await service.record_payment(
        sale_id=payload.sale_id,
        amount=payload.amount,
        method=payload.method,
        payment_type=payload.payment_type,
        actor=actor,
        mode=payload.mode,
        notes=payload.notes,
        allow_overpayment=payload.allow_overpayment,
    )
    return _to_response(result)


@router.post(
    "/{payment_id}/void",
    response_model=PaymentResultResponse,
    summary="Void payment",
    description="Void a payment; the sale's status is never changed by a void",
)
async def void_payment(
    payment_id: UUID,
    payload: PaymentVoidRequest,
    service: Payments,
    actor: Annotated[Actor, Depends(require_permission(Action.PAYMENT_VOID))],
) -> PaymentResultResponse:
    result = await service.void_payment(
        payment_id,
        payload.reason,
        actor,
        override=payload.override,
    )
    if result.alerts:
        logger.warning(
            "Payment void raised ledger alerts",
            payment_id=str(payment_id),
            alerts=[alert.code for alert in result.alerts],
        )
    return _to_response(result)


@router.get(
    "/sales/{sale_id}/ledger",
    response_model=LedgerResponse,
    summary="Sale ledger",
)
async def get_sale_ledger(
    sale_id: UUID,
    service: Payments,
    actor: Annotated[Actor, Depends(require_permission(Action.PAYMENT_VIEW))],
) -> LedgerResponse:
    summary, payments = await service.get_ledger(sale_id, actor)
    return LedgerResponse(
        sale_id=summary.sale_id,
        total_amount=summary.total_amount,
        active_sum=summary.active_sum,
        active_count=summary.active_count,
        outstanding=summary.outstanding,
        overpaid=summary.overpaid,
        is_fully_paid=summary.is_fully_paid,
        payments=[PaymentResponse.model_validate(p) for p in payments],
    )
