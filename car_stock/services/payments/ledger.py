"""
Payment ledger consistency checks.

The ledger of a sale is the set of its payments. Only ACTIVE payments of the
car payment types count toward the sale; ``OTHER_EXPENSE`` receipts are kept
for the books but never reduce the outstanding balance.

Rules enforced here:
- the active sum may exceed the sale total only by explicit override, and an
  accepted overpayment produces an alert;
- a payment of a COMPLETED or DELIVERED sale may only be voided with the
  void override permission; the sale keeps its status and an alert asks for
  manual reconciliation.
"""

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, FrozenSet, Iterable, Optional, Union

from car_stock.core.errors import (
    GuardFailedError,
    IllegalTransitionError,
    UnauthorizedError,
)
from car_stock.core.logging import get_logger
from car_stock.database.models.payment import PaymentStatus, PaymentType
from car_stock.database.models.sale import SaleStatus
from car_stock.database.models.user import UserRole
from car_stock.services.auth.permissions import Action, can_perform
from car_stock.services.sales.enums import validate_payment_status_transition

logger = get_logger(__name__)

ZERO = Decimal("0.00")

# Payments of sales in these statuses are locked against voiding
PAYMENT_LOCKED_SALE_STATUSES: FrozenSet[SaleStatus] = frozenset(
    {SaleStatus.COMPLETED, SaleStatus.DELIVERED}
)

ALERT_OVERPAYMENT = "OVERPAYMENT"
ALERT_SALE_UNDERPAID = "SALE_UNDERPAID"


@dataclass(frozen=True)
class LedgerAlert:
    """Business alert returned to the caller for manual follow-up."""

    code: str
    message: str
    sale_id: uuid.UUID
    amount: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "sale_id": str(self.sale_id),
            "amount": str(self.amount),
        }


@dataclass(frozen=True)
class LedgerSummary:
    sale_id: uuid.UUID
    total_amount: Decimal
    active_sum: Decimal
    active_count: int

    @property
    def outstanding(self) -> Decimal:
        return max(self.total_amount - self.active_sum, ZERO)

    @property
    def overpaid(self) -> Decimal:
        return max(self.active_sum - self.total_amount, ZERO)

    @property
    def is_fully_paid(self) -> bool:
        return self.active_sum >= self.total_amount


@dataclass(frozen=True)
class VoidDecision:
    allowed: bool
    requires_override: bool = False
    reason: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)


def counts_toward_sale(payment: Any) -> bool:
    """True for ACTIVE payments of a car payment type."""
    payment_type = payment.payment_type
    if not isinstance(payment_type, PaymentType):
        payment_type = PaymentType(payment_type)
    return payment.status == PaymentStatus.ACTIVE and payment_type.counts_toward_sale


def active_sum(payments: Iterable[Any]) -> Decimal:
    """Sum of the payments that count toward the sale."""
    return sum((p.amount for p in payments if counts_toward_sale(p)), ZERO)


def active_count(payments: Iterable[Any]) -> int:
    return sum(1 for p in payments if counts_toward_sale(p))


class PaymentLedger:
    """Ledger rules for recording and voiding payments."""

    def summarize(self, sale: Any, payments: Iterable[Any]) -> LedgerSummary:
        payments = list(payments)
        return LedgerSummary(
            sale_id=sale.id,
            total_amount=sale.total_amount,
            active_sum=active_sum(payments),
            active_count=active_count(payments),
        )

    def evaluate_void(
        self,
        payment: Any,
        sale: Any,
        actor_role: Union[UserRole, str, None] = None,
    ) -> VoidDecision:
        """Decide whether ``payment`` may be voided by ``actor_role``."""
        if not validate_payment_status_transition(payment.status, PaymentStatus.VOIDED):
            return VoidDecision(
                allowed=False,
                reason="payment already voided",
            )

        if sale is not None and sale.status in PAYMENT_LOCKED_SALE_STATUSES:
            if can_perform(actor_role, Action.PAYMENT_VOID_OVERRIDE):
                return VoidDecision(allowed=True, requires_override=True)
            return VoidDecision(
                allowed=False,
                requires_override=True,
                reason="payment belongs to a completed sale",
                context={"sale_status": sale.status.value},
            )

        return VoidDecision(allowed=True)

    def can_void(
        self,
        payment: Any,
        sale: Any,
        actor_role: Union[UserRole, str, None] = None,
    ) -> bool:
        return self.evaluate_void(payment, sale, actor_role).allowed

    def ensure_can_void(
        self,
        payment: Any,
        sale: Any,
        actor_role: Union[UserRole, str, None],
        override: bool = False,
    ) -> VoidDecision:
        """
        Raise the matching domain error when the void is not allowed.

        Raises:
            IllegalTransitionError: Payment is not ACTIVE
            GuardFailedError: Sale is completed and no override was requested
            UnauthorizedError: Override requested without the permission
        """
        decision = self.evaluate_void(payment, sale, actor_role)
        if decision.allowed:
            if decision.requires_override and not override:
                raise GuardFailedError(
                    "payment belongs to a completed sale",
                    payment_id=payment.id,
                    sale_id=sale.id,
                    sale_status=sale.status,
                )
            return decision

        if payment.status != PaymentStatus.ACTIVE:
            raise IllegalTransitionError(
                "Payment already voided",
                payment_id=payment.id,
                current_status=payment.status,
                target_status=PaymentStatus.VOIDED,
            )

        if override:
            raise UnauthorizedError(
                "Role may not override the completed sale lock",
                payment_id=payment.id,
                role=actor_role,
                action=Action.PAYMENT_VOID_OVERRIDE,
            )

        raise GuardFailedError(
            decision.reason or "payment cannot be voided",
            payment_id=payment.id,
            sale_id=sale.id,
            **decision.context,
        )

    def check_new_payment(
        self,
        sale: Any,
        current_active_sum: Decimal,
        amount: Decimal,
        payment_type: PaymentType,
        actor_role: Union[UserRole, str, None],
        allow_overpayment: bool = False,
    ) -> Optional[LedgerAlert]:
        """
        Validate a payment before it is recorded.

        Returns:
            An OVERPAYMENT alert when an override was used, otherwise None

        Raises:
            GuardFailedError: Non-positive amount, cancelled sale, or the payment
                would exceed the outstanding balance without override
            UnauthorizedError: Override requested without the permission
        """
        if amount <= ZERO:
            raise GuardFailedError("payment amount must be positive", amount=amount)

        if sale.status == SaleStatus.CANCELLED:
            raise GuardFailedError("sale is cancelled", sale_id=sale.id)

        if not payment_type.counts_toward_sale:
            return None

        new_sum = current_active_sum + amount
        if new_sum <= sale.total_amount:
            return None

        excess = new_sum - sale.total_amount
        if not allow_overpayment:
            raise GuardFailedError(
                "payment exceeds outstanding balance",
                sale_id=sale.id,
                outstanding=max(sale.total_amount - current_active_sum, ZERO),
                amount=amount,
            )

        if not can_perform(actor_role, Action.PAYMENT_OVERPAYMENT_OVERRIDE):
            raise UnauthorizedError(
                "Role may not accept overpayments",
                sale_id=sale.id,
                role=actor_role,
                action=Action.PAYMENT_OVERPAYMENT_OVERRIDE,
            )

        logger.warning(
            "Overpayment accepted by override",
            sale_id=str(sale.id),
            excess=str(excess),
        )
        return LedgerAlert(
            code=ALERT_OVERPAYMENT,
            message="Active payments exceed the sale total",
            sale_id=sale.id,
            amount=excess,
        )

    def alert_after_void(self, sale: Any, remaining_sum: Decimal) -> Optional[LedgerAlert]:
        """Alert when a locked sale is left underpaid by a void."""
        if sale.status not in PAYMENT_LOCKED_SALE_STATUSES:
            return None
        if remaining_sum >= sale.total_amount:
            return None

        shortfall = sale.total_amount - remaining_sum
        logger.warning(
            "Completed sale left underpaid after void",
            sale_id=str(sale.id),
            sale_status=sale.status.value,
            shortfall=str(shortfall),
        )
        return LedgerAlert(
            code=ALERT_SALE_UNDERPAID,
            message=f"{sale.status.display_name} sale is no longer fully paid",
            sale_id=sale.id,
            amount=shortfall,
        )
