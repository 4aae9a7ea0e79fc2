"""Customer model."""

from typing import Optional

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from car_stock.database.base import AuditedModel, create_table_args


class Customer(AuditedModel):
    """Buyer of a vehicle. Referenced by sales, managed by the CRM screens."""

    __tablename__ = "customers"

    code: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        unique=True,
        comment="Human readable customer code",
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)

    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    tax_id: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = create_table_args(comment="Vehicle buyers")
