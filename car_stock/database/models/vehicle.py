"""
Vehicle model catalogue.

A ``VehicleModel`` describes a make/model/variant that the dealership sells;
individual physical units are ``Stock`` rows pointing at it.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import CheckConstraint, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from car_stock.database.base import BaseModel, create_table_args


class VehicleModel(BaseModel):
    """Catalogue entry for a sellable vehicle model."""

    __tablename__ = "vehicle_models"

    brand: Mapped[str] = mapped_column(String(100), nullable=False)

    model: Mapped[str] = mapped_column(String(100), nullable=False)

    variant: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    year: Mapped[int] = mapped_column(Integer, nullable=False)

    list_price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="Suggested retail price",
    )

    __table_args__ = create_table_args(
        UniqueConstraint("brand", "model", "variant", "year", name="uq_vehicle_models_identity"),
        CheckConstraint("list_price >= 0", name="ck_vehicle_models_list_price_non_negative"),
        comment="Vehicle model catalogue",
    )
