"""
Pytest configuration and shared test fixtures.

Services are exercised against ``FakeStore``, an in-memory stand-in for the
database that behaves like the real unit of work where it matters:

- every unit of work reads private copies of the committed rows, so a unit
  that is never committed leaves nothing behind;
- commit checks the version counter of every changed row and rejects the
  write with ``ConcurrentModificationError`` if another unit got there first;
- commit enforces one non-cancelled sale per stock unit, like the partial
  unique index does;
- every repository call yields to the event loop so concurrent operations
  interleave.
"""

import asyncio
import os
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

os.environ.setdefault("APP_ENVIRONMENT", "test")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import inspect as sa_inspect

from car_stock.api.deps import get_current_actor
from car_stock.api.rate_limit import limiter
from car_stock.core.errors import (
    ConcurrentModificationError,
    NotFoundError,
    UnavailableError,
)
from car_stock.database.models.payment import (
    CAR_PAYMENT_TYPES,
    Payment,
    PaymentMethod,
    PaymentMode,
    PaymentStatus,
    PaymentType,
)
from car_stock.database.models.sale import Sale, SaleStatus, SaleType
from car_stock.database.models.stock import Stock, StockStatus
from car_stock.database.models.user import UserRole
from car_stock.main import app
from car_stock.services.auth.permissions import Actor
from car_stock.services.numbering import format_receipt_number, format_sale_number
from car_stock.services.payments.service import PaymentService, get_payment_service
from car_stock.services.sales.service import (
    SaleLifecycleService,
    get_sale_lifecycle_service,
)
from car_stock.services.stock.linkage import SALE_TO_STOCK_STATUS

BASE_TIME = datetime(2026, 10, 1, 9, 0, tzinfo=timezone.utc)


def column_values(obj: Any) -> Dict[str, Any]:
    return {attr.key: getattr(obj, attr.key) for attr in sa_inspect(type(obj)).column_attrs}


def clone(obj: Any) -> Any:
    return type(obj)(**column_values(obj))


# ============================================================================
# In-memory persistence
# ============================================================================


class FakeStore:
    """Committed state shared by every fake unit of work of a test."""

    def __init__(self):
        self.customers: set = set()
        self.sales: Dict[uuid.UUID, Sale] = {}
        self.stock: Dict[uuid.UUID, Stock] = {}
        self.payments: Dict[uuid.UUID, Payment] = {}
        self.history: List[Dict[str, Any]] = []
        self.activity: List[Dict[str, Any]] = []
        self.counters: Dict[Tuple[str, int, int], int] = {}
        self.units_opened = 0
        self.commits = 0
        self.rollbacks = 0
        self.fail_commits = 0
        self.unavailable = False

    def next_number(self, prefix: str, year: int, month: int = 0) -> int:
        key = (prefix, year, month)
        self.counters[key] = self.counters.get(key, 0) + 1
        return self.counters[key]

    def table_for(self, obj: Any) -> Dict[uuid.UUID, Any]:
        if isinstance(obj, Sale):
            return self.sales
        if isinstance(obj, Stock):
            return self.stock
        return self.payments

    def commit(self, uow: "FakeUnitOfWork") -> None:
        if self.unavailable:
            raise UnavailableError("Database is unavailable", operation="commit")
        if self.fail_commits > 0:
            self.fail_commits -= 1
            raise ConcurrentModificationError(
                "Record was modified by another transaction", operation="commit"
            )

        dirty = [
            obj for obj, snapshot in uow.loaded.values() if column_values(obj) != snapshot
        ]
        for obj in dirty:
            snapshot = uow.loaded[(type(obj), obj.id)][1]
            current = self.table_for(obj)[obj.id]
            if current.version_id != snapshot["version_id"]:
                raise ConcurrentModificationError(
                    "Record was modified by another transaction", operation="commit"
                )

        proposed = dict(self.sales)
        for obj in dirty + uow.added:
            if isinstance(obj, Sale):
                proposed[obj.id] = obj
        holders: Dict[uuid.UUID, uuid.UUID] = {}
        for sale in proposed.values():
            if sale.stock_id is None or sale.status == SaleStatus.CANCELLED:
                continue
            if sale.stock_id in holders:
                raise ConcurrentModificationError(
                    "Conflicting write rejected by the database", operation="commit"
                )
            holders[sale.stock_id] = sale.id

        for obj in dirty:
            obj.version_id += 1
            self.table_for(obj)[obj.id] = clone(obj)
        for obj in uow.added:
            self.table_for(obj)[obj.id] = clone(obj)
        self.history.extend(uow.history)
        self.activity.extend(uow.activity)
        self.commits += 1


class _FakeRepository:
    def __init__(self, uow: "FakeUnitOfWork"):
        self.uow = uow
        self.store = uow.store

    def _track(self, table: Dict[uuid.UUID, Any], model: type, row_id: uuid.UUID) -> Optional[Any]:
        key = (model, row_id)
        if key in self.uow.loaded:
            return self.uow.loaded[key][0]
        row = table.get(row_id)
        if row is None:
            return None
        copy = clone(row)
        self.uow.loaded[key] = (copy, column_values(copy))
        return copy


class FakeSaleRepository(_FakeRepository):
    async def get(self, sale_id):
        await asyncio.sleep(0)
        row = self.store.sales.get(sale_id)
        return clone(row) if row is not None else None

    async def get_for_update(self, sale_id):
        await asyncio.sleep(0)
        sale = self._track(self.store.sales, Sale, sale_id)
        if sale is None:
            raise NotFoundError("Sale not found", sale_id=sale_id)
        return sale

    async def find_active_holder_id(self, stock_id, exclude_sale_id=None):
        await asyncio.sleep(0)
        for sale in self.store.sales.values():
            if (
                sale.stock_id == stock_id
                and sale.status != SaleStatus.CANCELLED
                and sale.id != exclude_sale_id
            ):
                return sale.id
        return None

    async def customer_exists(self, customer_id):
        await asyncio.sleep(0)
        return customer_id in self.store.customers

    def add(self, sale):
        self.uow.added.append(sale)
        return sale

    def add_history(self, sale_id, action, to_status, from_status=None, changed_by=None, notes=None):
        entry = {
            "sale_id": sale_id,
            "action": action,
            "from_status": from_status,
            "to_status": to_status,
            "changed_by": changed_by,
            "notes": notes,
        }
        self.uow.history.append(entry)
        return entry


class FakeStockRepository(_FakeRepository):
    async def get_for_update(self, stock_id):
        await asyncio.sleep(0)
        return self._track(self.store.stock, Stock, stock_id)

    async def require_for_update(self, stock_id):
        stock = await self.get_for_update(stock_id)
        if stock is None:
            raise NotFoundError("Stock unit not found", stock_id=stock_id)
        return stock


class FakePaymentRepository(_FakeRepository):
    async def get_for_update(self, payment_id):
        await asyncio.sleep(0)
        payment = self._track(self.store.payments, Payment, payment_id)
        if payment is None:
            raise NotFoundError("Payment not found", payment_id=payment_id)
        return payment

    async def list_for_sale(self, sale_id, status=None):
        await asyncio.sleep(0)
        payments = [
            clone(p)
            for p in self.store.payments.values()
            if p.sale_id == sale_id and (status is None or p.status == status)
        ]
        return sorted(payments, key=lambda p: p.created_at)

    async def get_active_totals(self, sale_id):
        await asyncio.sleep(0)
        counted = [
            p
            for p in self.store.payments.values()
            if p.sale_id == sale_id
            and p.status == PaymentStatus.ACTIVE
            and p.payment_type in CAR_PAYMENT_TYPES
        ]
        return len(counted), sum((p.amount for p in counted), Decimal("0.00"))

    def add(self, payment):
        self.uow.added.append(payment)
        return payment


class FakeNumbers:
    def __init__(self, store: FakeStore):
        self.store = store

    async def next_sale_number(self, now=None):
        now = now or datetime.now(timezone.utc)
        return format_sale_number("SL", now.year, self.store.next_number("SL", now.year))

    async def next_receipt_number(self, now=None):
        now = now or datetime.now(timezone.utc)
        number = self.store.next_number("RCPT", now.year, now.month)
        return format_receipt_number("RCPT", now.year, now.month, number)


class FakeAudit:
    def __init__(self, uow: "FakeUnitOfWork"):
        self.uow = uow

    def record(self, user_id, action, entity, entity_id=None, details=None):
        entry = {
            "user_id": user_id,
            "action": action,
            "entity": entity,
            "entity_id": str(entity_id) if entity_id is not None else None,
            "details": details,
        }
        self.uow.activity.append(entry)
        return entry


class FakeUnitOfWork:
    """Drop-in replacement for ``UnitOfWork`` backed by a ``FakeStore``."""

    def __init__(self, store: FakeStore):
        self.store = store
        self.loaded: Dict[Tuple[type, uuid.UUID], Tuple[Any, Dict[str, Any]]] = {}
        self.added: List[Any] = []
        self.history: List[Dict[str, Any]] = []
        self.activity: List[Dict[str, Any]] = []
        self._committed = False

    async def __aenter__(self) -> "FakeUnitOfWork":
        self.store.units_opened += 1
        self.sales = FakeSaleRepository(self)
        self.stock = FakeStockRepository(self)
        self.payments = FakePaymentRepository(self)
        self.numbers = FakeNumbers(self.store)
        self.audit = FakeAudit(self)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if not self._committed:
            self.store.rollbacks += 1

    async def commit(self) -> None:
        await asyncio.sleep(0)
        self.store.commit(self)
        self._committed = True


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def uow_factory(store: FakeStore):
    return lambda: FakeUnitOfWork(store)


def make_actor(role: UserRole) -> Actor:
    return Actor(user_id=uuid.uuid4(), role=role)


@pytest.fixture
def admin() -> Actor:
    return make_actor(UserRole.ADMIN)


@pytest.fixture
def sales_staff() -> Actor:
    return make_actor(UserRole.SALES_STAFF)


@pytest.fixture
def sales_manager() -> Actor:
    return make_actor(UserRole.SALES_MANAGER)


@pytest.fixture
def accountant() -> Actor:
    return make_actor(UserRole.ACCOUNTANT)


@pytest.fixture
def stock_staff() -> Actor:
    return make_actor(UserRole.STOCK_STAFF)


@pytest.fixture
def customer_id(store: FakeStore) -> uuid.UUID:
    customer_id = uuid.uuid4()
    store.customers.add(customer_id)
    return customer_id


def build_stock(status: StockStatus = StockStatus.AVAILABLE, **overrides) -> Stock:
    values = dict(
        id=uuid.uuid4(),
        vin=uuid.uuid4().hex[:17].upper(),
        vehicle_model_id=uuid.uuid4(),
        status=status,
        cost_price=Decimal("400000.00"),
        actual_sale_price=None,
        reserved_at=None,
        sold_at=None,
        version_id=1,
        created_at=BASE_TIME,
        updated_at=BASE_TIME,
    )
    values.update(overrides)
    return Stock(**values)


def build_sale(
    status: SaleStatus = SaleStatus.DRAFT,
    stock_id: Optional[uuid.UUID] = None,
    total_amount: Decimal = Decimal("500000.00"),
    **overrides,
) -> Sale:
    values = dict(
        id=uuid.uuid4(),
        sale_number=f"SL-2026-{uuid.uuid4().int % 10000:04d}",
        customer_id=uuid.uuid4(),
        stock_id=stock_id,
        sale_type=SaleType.RESERVATION_SALE,
        status=status,
        total_amount=total_amount,
        paid_amount=Decimal("0.00"),
        version_id=1,
        created_at=BASE_TIME,
        updated_at=BASE_TIME,
    )
    values.update(overrides)
    return Sale(**values)


def build_payment(
    sale_id: uuid.UUID,
    amount: Decimal,
    payment_type: PaymentType = PaymentType.DEPOSIT,
    status: PaymentStatus = PaymentStatus.ACTIVE,
    **overrides,
) -> Payment:
    values = dict(
        id=uuid.uuid4(),
        receipt_number=f"RCPT-2610-{uuid.uuid4().int % 10000:04d}",
        sale_id=sale_id,
        amount=amount,
        method=PaymentMethod.CASH,
        payment_type=payment_type,
        mode=PaymentMode.INSTALLMENT,
        status=status,
        overpayment_flagged=False,
        version_id=1,
        created_at=BASE_TIME,
        updated_at=BASE_TIME,
    )
    values.update(overrides)
    return Payment(**values)


@pytest.fixture
def add_stock(store: FakeStore):
    def _add(status: StockStatus = StockStatus.AVAILABLE, **overrides) -> Stock:
        stock = build_stock(status, **overrides)
        store.stock[stock.id] = stock
        return stock

    return _add


@pytest.fixture
def add_sale(store: FakeStore):
    """Insert a sale, and optionally its stock unit in the matching status."""

    def _add(
        status: SaleStatus = SaleStatus.DRAFT,
        with_stock: bool = True,
        total_amount: Decimal = Decimal("500000.00"),
        **overrides,
    ) -> Sale:
        stock_id = overrides.pop("stock_id", None)
        if with_stock and stock_id is None:
            stock = build_stock(SALE_TO_STOCK_STATUS[status])
            store.stock[stock.id] = stock
            stock_id = stock.id
        sale = build_sale(status, stock_id=stock_id, total_amount=total_amount, **overrides)
        store.customers.add(sale.customer_id)
        store.sales[sale.id] = sale
        return sale

    return _add


@pytest.fixture
def add_payment(store: FakeStore):
    """Insert a payment and keep the sale's paid amount in step."""
    counter = {"n": 0}

    def _add(
        sale: Sale,
        amount: Decimal,
        payment_type: PaymentType = PaymentType.DEPOSIT,
        status: PaymentStatus = PaymentStatus.ACTIVE,
        **overrides,
    ) -> Payment:
        counter["n"] += 1
        overrides.setdefault("created_at", BASE_TIME + timedelta(minutes=counter["n"]))
        if status == PaymentStatus.VOIDED:
            overrides.setdefault("voided_at", BASE_TIME)
            overrides.setdefault("void_reason", "entered twice")
        payment = build_payment(sale.id, amount, payment_type, status, **overrides)
        store.payments[payment.id] = payment
        if status == PaymentStatus.ACTIVE and payment_type in CAR_PAYMENT_TYPES:
            stored = store.sales[sale.id]
            stored.paid_amount = stored.paid_amount + amount
        return payment

    return _add


@pytest.fixture
def make_sale():
    """Build a detached sale without storing it."""
    return build_sale


@pytest.fixture
def make_stock():
    """Build a detached stock unit without storing it."""
    return build_stock


@pytest.fixture
def make_payment():
    """Build a detached payment without storing it."""
    return build_payment


# ============================================================================
# API fixtures
# ============================================================================


@pytest.fixture
def api_actor() -> Dict[str, Actor]:
    """Mutable holder for the actor the API sees; tests swap ``["actor"]``."""
    return {"actor": make_actor(UserRole.ADMIN)}


@pytest.fixture
def act_as(api_actor):
    """Switch the API caller to a fresh actor with ``role``."""

    def _act_as(role: UserRole) -> Actor:
        api_actor["actor"] = make_actor(role)
        return api_actor["actor"]

    return _act_as


@pytest.fixture
def test_client(uow_factory, api_actor):
    """
    TestClient wired to in-memory services.

    Authentication is replaced by ``api_actor`` and the sale and payment
    services run against the test's ``FakeStore``.
    """
    app.dependency_overrides[get_current_actor] = lambda: api_actor["actor"]
    app.dependency_overrides[get_sale_lifecycle_service] = lambda: SaleLifecycleService(
        uow_factory=uow_factory
    )
    app.dependency_overrides[get_payment_service] = lambda: PaymentService(uow_factory=uow_factory)
    limiter.reset()

    client = TestClient(app)
    yield client

    app.dependency_overrides.clear()
    limiter.reset()
