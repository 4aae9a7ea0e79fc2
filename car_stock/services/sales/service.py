"""
Sale lifecycle service.

Orchestrates the sale state machine, the stock linkage rule and the payment
ledger inside one unit of work per operation. Public write operations return
a ``SaleResult`` instead of raising: callers switch on ``result.error.code``.
A concurrent modification is retried once with a fresh read; an unavailable
database is reported immediately.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Awaitable, Callable, List, Optional, Tuple, Union

from car_stock.core.errors import (
    DomainError,
    GuardFailedError,
    NotFoundError,
    UnauthorizedError,
)
from car_stock.core.logging import get_logger, log_performance
from car_stock.database.models.sale import (
    Sale,
    SaleHistoryAction,
    SaleStatus,
    SaleType,
)
from car_stock.database.models.stock import StockStatus
from car_stock.services.auth.permissions import Action, Actor
from car_stock.services.sales.enums import STOCK_ASSIGNABLE_STATUSES
from car_stock.services.sales.state_machine import (
    SaleResult,
    SaleStateMachine,
    TransitionContext,
    get_sale_state_machine,
)
from car_stock.services.unit_of_work import (
    UnitOfWork,
    UnitOfWorkFactory,
    run_with_conflict_retry,
)

logger = get_logger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SaleLifecycleService:
    """Creates sales, moves them through their lifecycle and links stock."""

    def __init__(
        self,
        uow_factory: Optional[UnitOfWorkFactory] = None,
        state_machine: Optional[SaleStateMachine] = None,
    ):
        self._uow_factory = uow_factory or UnitOfWork
        self.state_machine = state_machine or get_sale_state_machine()
        self.linkage = self.state_machine.linkage

    async def _run(
        self,
        name: str,
        operation: Callable[[], Awaitable[Sale]],
        **log_context,
    ) -> SaleResult:
        with log_performance(logger, name, **log_context):
            try:
                sale = await run_with_conflict_retry(operation, name, **log_context)
            except DomainError as e:
                logger.info(
                    "Sale operation rejected",
                    operation=name,
                    code=e.code,
                    reason=e.message,
                    **log_context,
                )
                return SaleResult.failure(e)
        return SaleResult.success(sale)

    def _require(self, actor: Actor, action: Action, **context) -> None:
        if not actor.can(action):
            raise UnauthorizedError(
                f"Role {actor.role.value} may not perform {action.value}",
                role=actor.role,
                action=action,
                **context,
            )

    async def get_sale(self, sale_id: uuid.UUID, actor: Actor) -> Sale:
        """
        Read a sale.

        Raises:
            UnauthorizedError: Actor may not view sales
            NotFoundError: No sale with this id
        """
        self._require(actor, Action.SALE_VIEW, sale_id=sale_id)
        async with self._uow_factory() as uow:
            sale = await uow.sales.get(sale_id)
        if sale is None:
            raise NotFoundError("Sale not found", sale_id=sale_id)
        return sale

    async def get_allowed_transitions(
        self,
        sale_id: uuid.UUID,
        actor: Actor,
    ) -> Tuple[Sale, List[SaleStatus]]:
        """The sale and the target statuses this actor may request for it."""
        sale = await self.get_sale(sale_id, actor)
        return sale, self.state_machine.get_allowed_transitions(sale, actor.role)

    async def create_sale(
        self,
        customer_id: uuid.UUID,
        total_amount: Decimal,
        actor: Actor,
        stock_id: Optional[uuid.UUID] = None,
        sale_type: SaleType = SaleType.RESERVATION_SALE,
        notes: Optional[str] = None,
    ) -> SaleResult:
        """
        Open a DRAFT sale and, if a stock unit is given, reserve it.

        The unit must be AVAILABLE and not held by another active sale.
        """

        async def operation() -> Sale:
            self._require(actor, Action.SALE_CREATE)
            if total_amount <= 0:
                raise GuardFailedError("total amount must be positive", total_amount=total_amount)

            async with self._uow_factory() as uow:
                if not await uow.sales.customer_exists(customer_id):
                    raise NotFoundError("Customer not found", customer_id=customer_id)

                now = _now()
                sale = Sale(
                    id=uuid.uuid4(),
                    sale_number=await uow.numbers.next_sale_number(now),
                    customer_id=customer_id,
                    sale_type=sale_type,
                    status=SaleStatus.DRAFT,
                    total_amount=total_amount,
                    paid_amount=Decimal("0.00"),
                    notes=notes,
                    created_by=actor.user_id,
                    created_at=now,
                    updated_at=now,
                    version_id=1,
                )

                if stock_id is not None:
                    stock = await uow.stock.require_for_update(stock_id)
                    holder_id = await uow.sales.find_active_holder_id(stock_id)
                    target = self.linkage.plan_new_link(stock, sale.id, sale.status, holder_id)
                    sale.stock_id = stock.id
                    self.linkage.apply(stock, target, sale_total=sale.total_amount, now=now)

                uow.sales.add(sale)
                uow.sales.add_history(
                    sale.id,
                    SaleHistoryAction.CREATE_SALE,
                    to_status=SaleStatus.DRAFT,
                    changed_by=actor.user_id,
                    notes=notes,
                )
                uow.audit.record(
                    actor.user_id,
                    "CREATE",
                    "sale",
                    sale.id,
                    {
                        "sale_number": sale.sale_number,
                        "stock_id": str(stock_id) if stock_id else None,
                        "total_amount": str(total_amount),
                    },
                )
                await uow.commit()

            logger.info(
                "Sale created",
                sale_id=str(sale.id),
                sale_number=sale.sale_number,
                stock_id=str(stock_id) if stock_id else None,
            )
            return sale

        return await self._run(
            "create_sale",
            operation,
            customer_id=str(customer_id),
        )

    async def _load_context(self, uow: UnitOfWork, sale: Sale) -> TransitionContext:
        stock = None
        holder_id = None
        if sale.stock_id is not None:
            stock = await uow.stock.get_for_update(sale.stock_id)
            if stock is not None:
                holder_id = await uow.sales.find_active_holder_id(
                    stock.id, exclude_sale_id=sale.id
                )

        count, total = await uow.payments.get_active_totals(sale.id)
        return TransitionContext(
            active_payment_count=count,
            active_payment_sum=total,
            stock=stock,
            holder_sale_id=holder_id,
        )

    async def transition(
        self,
        sale_id: uuid.UUID,
        target_status: Union[SaleStatus, str],
        actor: Actor,
        notes: Optional[str] = None,
    ) -> SaleResult:
        """
        Move a sale to ``target_status``.

        The sale row and its stock row are locked, guards are evaluated on the
        locked state, and the sale, stock, history and activity entries are
        committed together.
        """

        async def operation() -> Sale:
            self._require(actor, Action.SALE_TRANSITION, sale_id=sale_id)

            async with self._uow_factory() as uow:
                sale = await uow.sales.get_for_update(sale_id)
                context = await self._load_context(uow, sale)
                from_status = sale.status

                self.state_machine.apply_transition(sale, target_status, actor.role, context)

                uow.sales.add_history(
                    sale.id,
                    SaleHistoryAction.UPDATE_STATUS,
                    to_status=sale.status,
                    from_status=from_status,
                    changed_by=actor.user_id,
                    notes=notes,
                )
                uow.audit.record(
                    actor.user_id,
                    "TRANSITION",
                    "sale",
                    sale.id,
                    {
                        "from_status": from_status.value,
                        "to_status": sale.status.value,
                        "stock_status": context.stock.status.value if context.stock is not None else None,
                    },
                )
                await uow.commit()

            return sale

        return await self._run(
            "sale_transition",
            operation,
            sale_id=str(sale_id),
            to_status=str(getattr(target_status, "value", target_status)),
        )

    async def assign_stock(
        self,
        sale_id: uuid.UUID,
        stock_id: uuid.UUID,
        actor: Actor,
        notes: Optional[str] = None,
    ) -> SaleResult:
        """
        Link a sale to a stock unit, releasing the unit it held before.

        Only DRAFT, RESERVED and CONTRACTED sales can change their unit. The
        new unit takes the status implied by the sale's current status.
        """

        async def operation() -> Sale:
            self._require(actor, Action.SALE_UPDATE, sale_id=sale_id)

            async with self._uow_factory() as uow:
                sale = await uow.sales.get_for_update(sale_id)

                if sale.status not in STOCK_ASSIGNABLE_STATUSES:
                    raise GuardFailedError(
                        "stock can only be changed before completion",
                        sale_id=sale.id,
                        sale_status=sale.status,
                    )

                if sale.stock_id == stock_id:
                    return sale

                new_stock = await uow.stock.require_for_update(stock_id)
                holder_id = await uow.sales.find_active_holder_id(
                    stock_id, exclude_sale_id=sale.id
                )
                target = self.linkage.plan_new_link(new_stock, sale.id, sale.status, holder_id)

                now = _now()
                previous_stock_id = sale.stock_id
                if previous_stock_id is not None:
                    old_stock = await uow.stock.get_for_update(previous_stock_id)
                    if old_stock is not None:
                        old_holder_id = await uow.sales.find_active_holder_id(
                            old_stock.id, exclude_sale_id=sale.id
                        )
                        if old_holder_id is None:
                            self.linkage.apply(old_stock, StockStatus.AVAILABLE, now=now)

                sale.stock_id = new_stock.id
                sale.updated_at = now
                self.linkage.apply(new_stock, target, sale_total=sale.total_amount, now=now)

                action = (
                    SaleHistoryAction.CHANGE_STOCK
                    if previous_stock_id is not None
                    else SaleHistoryAction.ASSIGN_STOCK
                )
                uow.sales.add_history(
                    sale.id,
                    action,
                    to_status=sale.status,
                    from_status=sale.status,
                    changed_by=actor.user_id,
                    notes=notes,
                )
                uow.audit.record(
                    actor.user_id,
                    action.value,
                    "sale",
                    sale.id,
                    {
                        "previous_stock_id": str(previous_stock_id) if previous_stock_id else None,
                        "stock_id": str(new_stock.id),
                    },
                )
                await uow.commit()

            logger.info(
                "Stock assigned to sale",
                sale_id=str(sale_id),
                stock_id=str(stock_id),
                previous_stock_id=str(previous_stock_id) if previous_stock_id else None,
            )
            return sale

        return await self._run(
            "assign_stock",
            operation,
            sale_id=str(sale_id),
            stock_id=str(stock_id),
        )


def get_sale_lifecycle_service() -> SaleLifecycleService:
    """FastAPI dependency providing the lifecycle service."""
    return SaleLifecycleService()
