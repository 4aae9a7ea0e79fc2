"""
Sale lifecycle Pydantic schemas for API request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from car_stock.database.models.sale import SaleStatus, SaleType


class SaleCreateRequest(BaseModel):
    """Request to open a DRAFT sale."""

    model_config = ConfigDict(str_strip_whitespace=True)

    customer_id: UUID = Field(..., description="Buyer")
    total_amount: Decimal = Field(
        ...,
        gt=0,
        max_digits=12,
        decimal_places=2,
        description="Agreed sale price",
    )
    stock_id: Optional[UUID] = Field(
        None,
        description="Vehicle unit to reserve for this sale",
    )
    sale_type: SaleType = Field(
        default=SaleType.RESERVATION_SALE,
        description="Reservation or direct sale",
    )
    notes: Optional[str] = Field(None, max_length=2000)


class SaleTransitionRequest(BaseModel):
    """Request to move a sale to another status."""

    model_config = ConfigDict(str_strip_whitespace=True)

    target_status: str = Field(
        ...,
        min_length=1,
        max_length=20,
        description="Requested sale status",
        examples=["RESERVED"],
    )
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("target_status")
    @classmethod
    def normalize_status(cls, v: str) -> str:
        """Statuses are matched case-insensitively; unknown ones are rejected by the engine."""
        return v.upper()


class StockAssignmentRequest(BaseModel):
    """Request to link a sale to a different vehicle unit."""

    stock_id: UUID = Field(..., description="Vehicle unit to link")
    notes: Optional[str] = Field(None, max_length=2000)


class SaleResponse(BaseModel):
    """Sale as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    sale_number: str
    customer_id: UUID
    stock_id: Optional[UUID] = None
    sale_type: SaleType
    status: SaleStatus
    total_amount: Decimal
    paid_amount: Decimal
    remaining_amount: Decimal
    notes: Optional[str] = None
    reserved_at: Optional[datetime] = None
    contracted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version_id: int


class AllowedTransitionsResponse(BaseModel):
    """Targets the current user may request for a sale."""

    sale_id: UUID
    current_status: SaleStatus
    allowed_transitions: list[SaleStatus]
