"""
Stock model for physical vehicle units.

A stock row is one vehicle on the lot. Its status is owned by the sale that
currently holds it; only the stock linkage rule writes it.
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
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from car_stock.database.base import AuditedModel, create_table_args


class StockStatus(str, Enum):
    """Availability of a vehicle unit."""

    AVAILABLE = "AVAILABLE"
    RESERVED = "RESERVED"
    PREPARING = "PREPARING"
    SOLD = "SOLD"

    @classmethod
    def from_string(cls, value: str) -> "StockStatus":
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise ValueError(f"Invalid stock status: {value}")

    @property
    def is_available(self) -> bool:
        return self == StockStatus.AVAILABLE


class Stock(AuditedModel):
    """
    One physical vehicle unit.

    Attributes:
        vin: Vehicle identification number (unique)
        vehicle_model_id: Catalogue entry this unit belongs to
        status: Availability, derived from the holding sale's status
        cost_price: Acquisition cost
        actual_sale_price: Price recorded when the unit was sold
        reserved_at: When the unit was last taken off the market
        sold_at: When the unit was marked sold
        version_id: Optimistic lock counter
    """

    __tablename__ = "stock"

    vin: Mapped[str] = mapped_column(
        String(17),
        nullable=False,
        unique=True,
        comment="Vehicle identification number",
    )

    engine_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    color: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    vehicle_model_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("vehicle_models.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    status: Mapped[StockStatus] = mapped_column(
        SQLEnum(StockStatus, name="stock_status", create_constraint=True),
        nullable=False,
        default=StockStatus.AVAILABLE,
        comment="Current availability",
    )

    cost_price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
    )

    actual_sale_price: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        comment="Sale total recorded when the unit was sold",
    )

    reserved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    sold_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    version_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = create_table_args(
        Index("ix_stock_status", "status"),
        CheckConstraint("cost_price >= 0", name="ck_stock_cost_price_non_negative"),
        comment="Physical vehicle units",
    )

    @property
    def is_available(self) -> bool:
        return self.status == StockStatus.AVAILABLE
