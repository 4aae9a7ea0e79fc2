"""
API v1 routers.
"""

from car_stock.api.v1.me import router as me_router
from car_stock.api.v1.payments import router as payments_router
from car_stock.api.v1.reports import router as reports_router
from car_stock.api.v1.sales import router as sales_router

__all__ = ["me_router", "payments_router", "reports_router", "sales_router"]
