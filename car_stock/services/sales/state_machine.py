"""Sale state machine with authorization, guards and stock linkage.

A transition is checked in a fixed order, and nothing is mutated until every
check has passed:

1. the actor's role may perform ``SALE_TRANSITION``;
2. the target is in the allowed-next set of the current status;
3. the guard registered for the specific edge holds;
4. the linked stock unit can follow the sale (stock linkage rule).

The machine works on already loaded rows and a ``TransitionContext``
snapshot; reading and committing them is the lifecycle service's job.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from car_stock.core.errors import (
    DomainError,
    GuardFailedError,
    IllegalTransitionError,
    UnauthorizedError,
)
from car_stock.core.logging import get_logger
from car_stock.database.models.sale import SaleStatus
from car_stock.database.models.stock import StockStatus
from car_stock.database.models.user import UserRole
from car_stock.services.auth.permissions import Action, can_perform
from car_stock.services.sales.enums import (
    SALE_STATUS_TRANSITIONS,
    validate_sale_status_transition,
)
from car_stock.services.stock.linkage import StockLinkageRule

logger = get_logger(__name__)

_LIFECYCLE_ORDER = list(SaleStatus)


@dataclass(frozen=True)
class TransitionContext:
    """Facts about a sale read in the same transaction as the sale itself."""

    active_payment_count: int = 0
    active_payment_sum: Decimal = Decimal("0.00")
    stock: Any = None
    holder_sale_id: Optional[uuid.UUID] = None


@dataclass(frozen=True)
class SaleResult:
    """Outcome of a lifecycle operation: the updated sale or a typed error."""

    sale: Any = None
    error: Optional[DomainError] = None
    alerts: Tuple[Any, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, sale: Any, alerts: Tuple[Any, ...] = ()) -> "SaleResult":
        return cls(sale=sale, alerts=tuple(alerts))

    @classmethod
    def failure(cls, error: DomainError) -> "SaleResult":
        return cls(error=error)

    def unwrap(self) -> Any:
        """Return the sale or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.sale


class SaleStateMachine:
    """State machine for the sale lifecycle."""

    def __init__(self, linkage: Optional[StockLinkageRule] = None):
        self.linkage = linkage or StockLinkageRule()
        self._transition_guards: Dict[
            Tuple[SaleStatus, SaleStatus],
            Callable[[Any, TransitionContext], None],
        ] = self._initialize_guards()
        self._side_effects: Dict[
            SaleStatus,
            Callable[[Any, datetime], None],
        ] = self._initialize_side_effects()

    def _initialize_guards(
        self,
    ) -> Dict[Tuple[SaleStatus, SaleStatus], Callable[[Any, TransitionContext], None]]:
        return {
            (SaleStatus.RESERVED, SaleStatus.CONTRACTED): self._guard_has_active_payment,
            (SaleStatus.CONTRACTED, SaleStatus.COMPLETED): self._guard_fully_paid,
            (SaleStatus.COMPLETED, SaleStatus.DELIVERED): self._guard_stock_assigned,
        }

    def _initialize_side_effects(self) -> Dict[SaleStatus, Callable[[Any, datetime], None]]:
        return {
            SaleStatus.RESERVED: self._effect_reserved,
            SaleStatus.CONTRACTED: self._effect_contracted,
            SaleStatus.COMPLETED: self._effect_completed,
            SaleStatus.DELIVERED: self._effect_delivered,
            SaleStatus.CANCELLED: self._effect_cancelled,
        }

    def get_allowed_transitions(
        self,
        sale: Any,
        actor_role: Union[UserRole, str, None] = None,
        check_permission: bool = True,
    ) -> List[SaleStatus]:
        """
        Targets the actor may request from the sale's current status.

        Guards are not evaluated; a listed target can still fail on a guard.
        """
        if check_permission and not can_perform(actor_role, Action.SALE_TRANSITION):
            return []
        allowed = SALE_STATUS_TRANSITIONS.get(sale.status, frozenset())
        return [status for status in _LIFECYCLE_ORDER if status in allowed]

    def validate_transition(
        self,
        sale: Any,
        target_status: Union[SaleStatus, str],
        actor_role: Union[UserRole, str, None],
        context: Optional[TransitionContext] = None,
    ) -> Optional[StockStatus]:
        """
        Run every check for ``sale -> target_status`` without mutating anything.

        Returns:
            The stock status the linked unit must take, or None if the stock
            is absent or must stay as it is

        Raises:
            UnauthorizedError: Role may not transition sales
            IllegalTransitionError: Target not in the allowed-next set
            GuardFailedError: Edge precondition does not hold
            LinkageConflictError: Linked unit is held by another active sale
        """
        context = context or TransitionContext()
        current_status = sale.status

        if not can_perform(actor_role, Action.SALE_TRANSITION):
            raise UnauthorizedError(
                "Role may not change sale status",
                sale_id=sale.id,
                role=actor_role,
                action=Action.SALE_TRANSITION,
            )

        target = self._coerce_status(target_status, current_status)

        if not validate_sale_status_transition(current_status, target):
            allowed = self.get_allowed_transitions(sale, check_permission=False)
            raise IllegalTransitionError(
                f"Invalid transition from {current_status.value} to {target.value}",
                sale_id=sale.id,
                current_status=current_status,
                target_status=target,
                allowed_transitions=[s.value for s in allowed],
            )

        guard = self._transition_guards.get((current_status, target))
        if guard is not None:
            guard(sale, context)

        planned_stock_status = self._plan_stock(sale, target, context)

        logger.debug(
            "Sale transition validated",
            sale_id=str(sale.id),
            from_status=current_status.value,
            to_status=target.value,
            planned_stock_status=planned_stock_status.value if planned_stock_status else None,
        )
        return planned_stock_status

    def apply_transition(
        self,
        sale: Any,
        target_status: Union[SaleStatus, str],
        actor_role: Union[UserRole, str, None],
        context: Optional[TransitionContext] = None,
        now: Optional[datetime] = None,
    ) -> Any:
        """
        Validate, then move the sale and its stock unit to the new state.

        Raises:
            DomainError: Any validation failure, with the sale untouched
        """
        context = context or TransitionContext()
        planned_stock_status = self.validate_transition(sale, target_status, actor_role, context)
        target = self._coerce_status(target_status, sale.status)
        now = now or datetime.now(timezone.utc)

        previous_status = sale.status
        sale.status = target
        sale.updated_at = now

        side_effect = self._side_effects.get(target)
        if side_effect is not None:
            side_effect(sale, now)

        if planned_stock_status is not None and context.stock is not None:
            self.linkage.apply(
                context.stock,
                planned_stock_status,
                sale_total=sale.total_amount,
                now=now,
            )

        logger.info(
            "Sale transition applied",
            sale_id=str(sale.id),
            from_status=previous_status.value,
            to_status=target.value,
            stock_id=str(sale.stock_id) if sale.stock_id else None,
        )
        return sale

    def transition(
        self,
        sale: Any,
        target_status: Union[SaleStatus, str],
        actor_role: Union[UserRole, str, None],
        context: Optional[TransitionContext] = None,
        now: Optional[datetime] = None,
    ) -> SaleResult:
        """Apply a transition and report the outcome as a ``SaleResult``."""
        try:
            updated = self.apply_transition(sale, target_status, actor_role, context, now)
        except DomainError as e:
            logger.info(
                "Sale transition rejected",
                sale_id=str(sale.id),
                from_status=sale.status.value,
                to_status=str(target_status),
                code=e.code,
                reason=e.message,
            )
            return SaleResult.failure(e)
        return SaleResult.success(updated)

    def _coerce_status(
        self,
        target_status: Union[SaleStatus, str],
        current_status: SaleStatus,
    ) -> SaleStatus:
        if isinstance(target_status, SaleStatus):
            return target_status
        try:
            return SaleStatus.from_string(str(target_status))
        except ValueError:
            raise IllegalTransitionError(
                f"Unknown sale status: {target_status}",
                current_status=current_status,
                target_status=str(target_status),
            )

    def _plan_stock(
        self,
        sale: Any,
        target: SaleStatus,
        context: TransitionContext,
    ) -> Optional[StockStatus]:
        if sale.stock_id is None:
            return None
        if context.stock is None:
            raise GuardFailedError(
                "linked stock unit not found",
                sale_id=sale.id,
                stock_id=sale.stock_id,
            )
        return self.linkage.plan(context.stock, sale.id, target, context.holder_sale_id)

    # Guards

    def _guard_has_active_payment(self, sale: Any, context: TransitionContext) -> None:
        if context.active_payment_count < 1:
            raise GuardFailedError("no active payment", sale_id=sale.id)

    def _guard_fully_paid(self, sale: Any, context: TransitionContext) -> None:
        if context.active_payment_sum < sale.total_amount:
            raise GuardFailedError(
                "outstanding balance",
                sale_id=sale.id,
                total_amount=sale.total_amount,
                active_sum=context.active_payment_sum,
                outstanding=sale.total_amount - context.active_payment_sum,
            )

    def _guard_stock_assigned(self, sale: Any, context: TransitionContext) -> None:
        if sale.stock_id is None:
            raise GuardFailedError("no stock unit assigned", sale_id=sale.id)

    # Side effects

    def _effect_reserved(self, sale: Any, now: datetime) -> None:
        sale.reserved_at = now

    def _effect_contracted(self, sale: Any, now: datetime) -> None:
        sale.contracted_at = now

    def _effect_completed(self, sale: Any, now: datetime) -> None:
        sale.completed_at = now

    def _effect_delivered(self, sale: Any, now: datetime) -> None:
        sale.delivered_at = now

    def _effect_cancelled(self, sale: Any, now: datetime) -> None:
        sale.cancelled_at = now


def get_sale_state_machine() -> SaleStateMachine:
    """Factory used by the lifecycle service and the API layer."""
    return SaleStateMachine()
