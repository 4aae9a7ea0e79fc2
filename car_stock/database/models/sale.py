"""
Sale models.

A ``Sale`` links a customer, at most one stock unit and a ledger of payments.
Its status is only ever changed by the sale state machine; every change is
recorded in ``SaleStatusHistory``.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    case,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import ENUM, UUID
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql.elements import ColumnElement

from car_stock.database.base import AuditedModel, Base, UUIDMixin, create_table_args


class SaleStatus(str, Enum):
    """Lifecycle status of a sale, in lifecycle order."""

    DRAFT = "DRAFT"
    RESERVED = "RESERVED"
    CONTRACTED = "CONTRACTED"
    COMPLETED = "COMPLETED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"

    @classmethod
    def from_string(cls, value: str) -> "SaleStatus":
        """
        Convert string to SaleStatus enum.

        Raises:
            ValueError: If value is not a valid status
        """
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise ValueError(f"Invalid sale status: {value}")

    @property
    def display_name(self) -> str:
        return self.value.title()


class SaleType(str, Enum):
    """How the sale started: with a reservation deposit or directly."""

    RESERVATION_SALE = "RESERVATION_SALE"
    DIRECT_SALE = "DIRECT_SALE"


class SaleHistoryAction(str, Enum):
    CREATE_SALE = "CREATE_SALE"
    UPDATE_STATUS = "UPDATE_STATUS"
    ASSIGN_STOCK = "ASSIGN_STOCK"
    CHANGE_STOCK = "CHANGE_STOCK"


class Sale(AuditedModel):
    """
    Vehicle sale.

    Attributes:
        sale_number: Human readable number (SL-YYYY-NNNN)
        customer_id: Buyer
        stock_id: Linked vehicle unit, at most one active sale per unit
        sale_type: Reservation or direct sale
        status: Lifecycle status
        total_amount: Agreed price
        paid_amount: Sum of active car payments, kept in step by the payment service
        version_id: Optimistic lock counter
    """

    __tablename__ = "sales"

    sale_number: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        unique=True,
        comment="Human readable sale number",
    )

    customer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("customers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    stock_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("stock.id", ondelete="RESTRICT"),
        nullable=True,
        comment="Linked vehicle unit",
    )

    sale_type: Mapped[SaleType] = mapped_column(
        SQLEnum(SaleType, name="sale_type", create_constraint=True),
        nullable=False,
        default=SaleType.RESERVATION_SALE,
    )

    status: Mapped[SaleStatus] = mapped_column(
        SQLEnum(SaleStatus, name="sale_status", create_constraint=True),
        nullable=False,
        default=SaleStatus.DRAFT,
        comment="Lifecycle status",
    )

    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="Agreed sale price",
    )

    paid_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
        comment="Sum of active car payments",
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    reserved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    contracted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = create_table_args(
        Index("ix_sales_status_created", "status", "created_at"),
        Index(
            "uq_sales_active_stock",
            "stock_id",
            unique=True,
            postgresql_where=text("stock_id IS NOT NULL AND status <> 'CANCELLED'"),
        ),
        CheckConstraint("total_amount > 0", name="ck_sales_total_amount_positive"),
        CheckConstraint("paid_amount >= 0", name="ck_sales_paid_amount_non_negative"),
        comment="Vehicle sales",
    )

    @hybrid_property
    def remaining_amount(self) -> Decimal:
        """Balance still owed; an overridden overpayment leaves nothing owed."""
        return max(self.total_amount - self.paid_amount, Decimal("0.00"))

    @remaining_amount.inplace.expression
    @classmethod
    def _remaining_amount_expression(cls) -> ColumnElement[Decimal]:
        return case(
            (cls.total_amount > cls.paid_amount, cls.total_amount - cls.paid_amount),
            else_=0,
        )


class SaleStatusHistory(Base, UUIDMixin):
    """Append-only audit trail of sale creation, status and stock changes."""

    __tablename__ = "sale_status_history"

    sale_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("sales.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    action: Mapped[SaleHistoryAction] = mapped_column(
        SQLEnum(SaleHistoryAction, name="sale_history_action", create_constraint=True),
        nullable=False,
    )

    from_status: Mapped[Optional[SaleStatus]] = mapped_column(
        ENUM(SaleStatus, name="sale_status", create_type=False),
        nullable=True,
    )

    to_status: Mapped[SaleStatus] = mapped_column(
        ENUM(SaleStatus, name="sale_status", create_type=False),
        nullable=False,
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    changed_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
