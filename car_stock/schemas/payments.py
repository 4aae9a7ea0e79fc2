"""
Payment Pydantic schemas for API request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from car_stock.database.models.payment import (
    PaymentMethod,
    PaymentMode,
    PaymentStatus,
    PaymentType,
)
from car_stock.database.models.sale import SaleStatus


class PaymentCreateRequest(BaseModel):
    """Request to record a payment."""

    model_config = ConfigDict(str_strip_whitespace=True)

    sale_id: UUID
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    method: PaymentMethod
    payment_type: PaymentType
    mode: PaymentMode = PaymentMode.INSTALLMENT
    notes: Optional[str] = Field(None, max_length=2000)
    allow_overpayment: bool = Field(
        default=False,
        description="Accept an amount above the outstanding balance (override permission required)",
    )


class PaymentVoidRequest(BaseModel):
    """Request to void a payment."""

    model_config = ConfigDict(str_strip_whitespace=True)

    reason: str = Field(..., min_length=1, max_length=500)
    override: bool = Field(
        default=False,
        description="Void a payment of a completed sale (override permission required)",
    )


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    receipt_number: str
    sale_id: UUID
    amount: Decimal
    method: PaymentMethod
    payment_type: PaymentType
    mode: PaymentMode
    status: PaymentStatus
    overpayment_flagged: bool
    notes: Optional[str] = None
    void_reason: Optional[str] = None
    voided_at: Optional[datetime] = None
    voided_by: Optional[UUID] = None
    created_at: Optional[datetime] = None


class LedgerAlertResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str
    message: str
    sale_id: UUID
    amount: Decimal


class PaymentResultResponse(BaseModel):
    """Recorded or voided payment together with the sale's new ledger state."""

    payment: PaymentResponse
    sale_status: SaleStatus
    sale_paid_amount: Decimal
    alerts: list[LedgerAlertResponse] = Field(default_factory=list)


class LedgerResponse(BaseModel):
    sale_id: UUID
    total_amount: Decimal
    active_sum: Decimal
    active_count: int
    outstanding: Decimal
    overpaid: Decimal
    is_fully_paid: bool
    payments: list[PaymentResponse]
