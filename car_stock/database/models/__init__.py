"""
Database models package.

Importing this package registers every table with ``Base.metadata`` for
Alembic autogeneration.
"""

from car_stock.database.base import AuditedModel, Base, BaseModel
from car_stock.database.models.activity_log import ActivityLog
from car_stock.database.models.customer import Customer
from car_stock.database.models.number_sequence import NumberSequence
from car_stock.database.models.payment import (
    CAR_PAYMENT_TYPES,
    Payment,
    PaymentMethod,
    PaymentMode,
    PaymentStatus,
    PaymentType,
)
from car_stock.database.models.sale import (
    Sale,
    SaleHistoryAction,
    SaleStatus,
    SaleStatusHistory,
    SaleType,
)
from car_stock.database.models.stock import Stock, StockStatus
from car_stock.database.models.user import User, UserRole
from car_stock.database.models.vehicle import VehicleModel

__all__ = [
    "Base",
    "BaseModel",
    "AuditedModel",
    "ActivityLog",
    "Customer",
    "NumberSequence",
    "CAR_PAYMENT_TYPES",
    "Payment",
    "PaymentMethod",
    "PaymentMode",
    "PaymentStatus",
    "PaymentType",
    "Sale",
    "SaleHistoryAction",
    "SaleStatus",
    "SaleStatusHistory",
    "SaleType",
    "Stock",
    "StockStatus",
    "User",
    "UserRole",
    "VehicleModel",
]
