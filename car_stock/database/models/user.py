"""
Staff user model with dealership roles.

Credentials live with the identity provider; this table only records who a
token subject is, which role they act under and whether they are active.
"""

import enum
from typing import Optional

from sqlalchemy import Boolean, Enum as SQLEnum, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from car_stock.database.base import AuditedModel, create_table_args


class UserRole(str, enum.Enum):
    """Dealership staff roles used by the permission table."""

    ADMIN = "ADMIN"
    SALES_MANAGER = "SALES_MANAGER"
    STOCK_STAFF = "STOCK_STAFF"
    ACCOUNTANT = "ACCOUNTANT"
    SALES_STAFF = "SALES_STAFF"

    @classmethod
    def from_string(cls, value: str) -> "UserRole":
        """
        Convert string to UserRole enum.

        Raises:
            ValueError: If value is not a valid role
        """
        try:
            return cls[value.strip().upper()]
        except KeyError:
            raise ValueError(f"Invalid role: {value}")


class User(AuditedModel):
    """
    Dealership staff account.

    Attributes:
        username: Unique login name at the identity provider
        first_name: Given name
        last_name: Family name
        role: Role used for every permission check
        is_active: Inactive users are rejected before any service call
    """

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
        comment="Unique login name",
    )

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)

    last_name: Mapped[str] = mapped_column(String(100), nullable=False)

    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole, name="user_role", create_constraint=True),
        nullable=False,
        default=UserRole.SALES_STAFF,
        comment="Role used for permission checks",
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        comment="Whether the account may act",
    )

    __table_args__ = create_table_args(
        Index("ix_users_role_active", "role", "is_active"),
        comment="Dealership staff accounts",
    )
