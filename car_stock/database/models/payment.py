"""
Payment model.

Payments are never deleted. A mistaken payment is voided, which keeps the
receipt on record with the reason, time and the user who voided it.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from car_stock.database.base import AuditedModel, create_table_args


class PaymentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    VOIDED = "VOIDED"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    BANK_TRANSFER = "BANK_TRANSFER"
    CHEQUE = "CHEQUE"
    CREDIT_CARD = "CREDIT_CARD"


class PaymentType(str, Enum):
    """What the money is for."""

    DEPOSIT = "DEPOSIT"
    DOWN_PAYMENT = "DOWN_PAYMENT"
    FINANCE_PAYMENT = "FINANCE_PAYMENT"
    OTHER_EXPENSE = "OTHER_EXPENSE"

    @property
    def counts_toward_sale(self) -> bool:
        """Only car payments reduce the sale's outstanding balance."""
        return self in CAR_PAYMENT_TYPES


CAR_PAYMENT_TYPES = frozenset(
    {PaymentType.DEPOSIT, PaymentType.DOWN_PAYMENT, PaymentType.FINANCE_PAYMENT}
)


class PaymentMode(str, Enum):
    FULL = "FULL"
    INSTALLMENT = "INSTALLMENT"


class Payment(AuditedModel):
    """
    Money received against a sale.

    Attributes:
        receipt_number: Human readable receipt number (RCPT-YYMM-NNNN)
        sale_id: Sale the payment belongs to
        amount: Positive amount received
        method: How it was paid
        payment_type: What it was paid for
        mode: Full settlement or installment
        status: ACTIVE or VOIDED
        overpayment_flagged: Accepted above the outstanding balance by override
    """

    __tablename__ = "payments"

    receipt_number: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        unique=True,
        comment="Human readable receipt number",
    )

    sale_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("sales.id", ondelete="RESTRICT"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    method: Mapped[PaymentMethod] = mapped_column(
        SQLEnum(PaymentMethod, name="payment_method", create_constraint=True),
        nullable=False,
    )

    payment_type: Mapped[PaymentType] = mapped_column(
        SQLEnum(PaymentType, name="payment_type", create_constraint=True),
        nullable=False,
    )

    mode: Mapped[PaymentMode] = mapped_column(
        SQLEnum(PaymentMode, name="payment_mode", create_constraint=True),
        nullable=False,
        default=PaymentMode.INSTALLMENT,
    )

    status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(PaymentStatus, name="payment_status", create_constraint=True),
        nullable=False,
        default=PaymentStatus.ACTIVE,
    )

    overpayment_flagged: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Accepted above the outstanding balance by override",
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    void_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    voided_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    voided_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = create_table_args(
        Index("ix_payments_sale_status", "sale_id", "status"),
        CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
        CheckConstraint(
            "(status = 'VOIDED') = (voided_at IS NOT NULL)",
            name="ck_payments_voided_at_matches_status",
        ),
        comment="Payments received against sales",
    )
