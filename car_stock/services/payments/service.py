"""
Payment service: recording and voiding payments against sales.

Recording and voiding are the only ways the ledger changes. Neither ever
changes a sale's status; a void on a completed sale returns an alert instead.
Errors are raised as ``DomainError`` subclasses.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

from car_stock.core.errors import GuardFailedError, NotFoundError, UnauthorizedError
from car_stock.core.logging import get_logger
from car_stock.database.models.payment import (
    Payment,
    PaymentMethod,
    PaymentMode,
    PaymentStatus,
    PaymentType,
)
from car_stock.database.models.sale import Sale
from car_stock.services.auth.permissions import Action, Actor
from car_stock.services.payments.ledger import (
    LedgerAlert,
    LedgerSummary,
    PaymentLedger,
    counts_toward_sale,
)
from car_stock.services.unit_of_work import (
    UnitOfWork,
    UnitOfWorkFactory,
    run_with_conflict_retry,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class PaymentResult:
    payment: Payment
    sale: Sale
    alerts: Tuple[LedgerAlert, ...] = field(default_factory=tuple)


class PaymentService:
    """Records and voids payments while keeping the ledger consistent."""

    def __init__(
        self,
        uow_factory: Optional[UnitOfWorkFactory] = None,
        ledger: Optional[PaymentLedger] = None,
    ):
        self._uow_factory = uow_factory or UnitOfWork
        self.ledger = ledger or PaymentLedger()

    def _require(self, actor: Actor, action: Action, **context) -> None:
        if not actor.can(action):
            raise UnauthorizedError(
                f"Role {actor.role.value} may not perform {action.value}",
                role=actor.role,
                action=action,
                **context,
            )

    async def record_payment(
        self,
        sale_id: uuid.UUID,
        amount: Decimal,
        method: PaymentMethod,
        payment_type: PaymentType,
        actor: Actor,
        mode: PaymentMode = PaymentMode.INSTALLMENT,
        notes: Optional[str] = None,
        allow_overpayment: bool = False,
    ) -> PaymentResult:
        """
        Record a payment against a sale.

        Raises:
            UnauthorizedError: Actor may not record payments or overrides
            NotFoundError: Sale does not exist
            GuardFailedError: Cancelled sale, bad amount, or overpayment
            ConcurrentModificationError: Conflict persisted after one retry
            UnavailableError: Database unreachable
        """
        self._require(actor, Action.PAYMENT_CREATE, sale_id=sale_id)

        async def operation() -> PaymentResult:
            async with self._uow_factory() as uow:
                sale = await uow.sales.get_for_update(sale_id)
                _, current_sum = await uow.payments.get_active_totals(sale.id)

                alert = self.ledger.check_new_payment(
                    sale,
                    current_sum,
                    amount,
                    payment_type,
                    actor.role,
                    allow_overpayment=allow_overpayment,
                )

                now = datetime.now(timezone.utc)
                payment = Payment(
                    id=uuid.uuid4(),
                    receipt_number=await uow.numbers.next_receipt_number(now),
                    sale_id=sale.id,
                    amount=amount,
                    method=method,
                    payment_type=payment_type,
                    mode=mode,
                    status=PaymentStatus.ACTIVE,
                    overpayment_flagged=alert is not None,
                    notes=notes,
                    created_by=actor.user_id,
                    created_at=now,
                    updated_at=now,
                    version_id=1,
                )
                uow.payments.add(payment)

                if payment_type.counts_toward_sale:
                    sale.paid_amount = current_sum + amount
                    sale.updated_at = now

                uow.audit.record(
                    actor.user_id,
                    "CREATE",
                    "payment",
                    payment.id,
                    {
                        "sale_id": str(sale.id),
                        "receipt_number": payment.receipt_number,
                        "amount": str(amount),
                        "payment_type": payment_type.value,
                        "overpayment_flagged": payment.overpayment_flagged,
                    },
                )
                await uow.commit()

            logger.info(
                "Payment recorded",
                payment_id=str(payment.id),
                sale_id=str(sale.id),
                amount=str(amount),
                payment_type=payment_type.value,
                overpayment_flagged=payment.overpayment_flagged,
            )
            return PaymentResult(payment=payment, sale=sale, alerts=(alert,) if alert else ())

        return await run_with_conflict_retry(operation, "record_payment", sale_id=str(sale_id))

    async def void_payment(
        self,
        payment_id: uuid.UUID,
        reason: str,
        actor: Actor,
        override: bool = False,
    ) -> PaymentResult:
        """
        Void a payment.

        The sale's status is never changed. Voiding a payment of a COMPLETED
        or DELIVERED sale requires ``override`` and the override permission,
        and returns a SALE_UNDERPAID alert when the sale is left short.

        Raises:
            UnauthorizedError: Actor may not void payments or override the lock
            NotFoundError: Payment does not exist
            IllegalTransitionError: Payment already voided
            GuardFailedError: Missing reason, or completed sale without override
        """
        self._require(actor, Action.PAYMENT_VOID, payment_id=payment_id)
        if not reason or not reason.strip():
            raise GuardFailedError("void reason is required", payment_id=payment_id)

        async def operation() -> PaymentResult:
            async with self._uow_factory() as uow:
                payment = await uow.payments.get_for_update(payment_id)
                sale = await uow.sales.get_for_update(payment.sale_id)

                decision = self.ledger.ensure_can_void(payment, sale, actor.role, override=override)

                _, current_sum = await uow.payments.get_active_totals(sale.id)
                remaining_sum = current_sum
                if counts_toward_sale(payment):
                    remaining_sum = current_sum - payment.amount

                now = datetime.now(timezone.utc)
                payment.status = PaymentStatus.VOIDED
                payment.void_reason = reason.strip()
                payment.voided_at = now
                payment.voided_by = actor.user_id
                payment.updated_at = now

                sale.paid_amount = remaining_sum
                sale.updated_at = now

                alert = None
                if decision.requires_override:
                    alert = self.ledger.alert_after_void(sale, remaining_sum)

                uow.audit.record(
                    actor.user_id,
                    "VOID",
                    "payment",
                    payment.id,
                    {
                        "sale_id": str(sale.id),
                        "reason": payment.void_reason,
                        "override": decision.requires_override,
                        "amount": str(payment.amount),
                    },
                )
                await uow.commit()

            logger.info(
                "Payment voided",
                payment_id=str(payment.id),
                sale_id=str(sale.id),
                override=decision.requires_override,
                sale_status=sale.status.value,
            )
            return PaymentResult(payment=payment, sale=sale, alerts=(alert,) if alert else ())

        return await run_with_conflict_retry(operation, "void_payment", payment_id=str(payment_id))

    async def active_sum(self, sale_id: uuid.UUID) -> Decimal:
        """Sum of the active car payments of a sale, as committed."""
        async with self._uow_factory() as uow:
            _, total = await uow.payments.get_active_totals(sale_id)
        return total

    async def get_ledger(
        self,
        sale_id: uuid.UUID,
        actor: Actor,
    ) -> Tuple[LedgerSummary, List[Payment]]:
        """Ledger summary and every payment of a sale, voided ones included."""
        self._require(actor, Action.PAYMENT_VIEW, sale_id=sale_id)

        async with self._uow_factory() as uow:
            sale = await uow.sales.get(sale_id)
            if sale is None:
                raise NotFoundError("Sale not found", sale_id=sale_id)
            payments = await uow.payments.list_for_sale(sale_id)

        return self.ledger.summarize(sale, payments), payments


def get_payment_service() -> PaymentService:
    """FastAPI dependency providing the payment service."""
    return PaymentService()
