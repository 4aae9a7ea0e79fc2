"""Sale and payment status transition tables.

Valid sale transitions:
- DRAFT -> RESERVED, CANCELLED
- RESERVED -> CONTRACTED, CANCELLED
- CONTRACTED -> COMPLETED, CANCELLED
- COMPLETED -> DELIVERED
- DELIVERED -> (final)
- CANCELLED -> (final)

Self-transitions are never valid.
"""

from typing import Dict, FrozenSet, Union

from car_stock.database.models.payment import PaymentStatus
from car_stock.database.models.sale import SaleStatus

SALE_STATUS_TRANSITIONS: Dict[SaleStatus, FrozenSet[SaleStatus]] = {
    SaleStatus.DRAFT: frozenset({SaleStatus.RESERVED, SaleStatus.CANCELLED}),
    SaleStatus.RESERVED: frozenset({SaleStatus.CONTRACTED, SaleStatus.CANCELLED}),
    SaleStatus.CONTRACTED: frozenset({SaleStatus.COMPLETED, SaleStatus.CANCELLED}),
    SaleStatus.COMPLETED: frozenset({SaleStatus.DELIVERED}),
    SaleStatus.DELIVERED: frozenset(),
    SaleStatus.CANCELLED: frozenset(),
}

PAYMENT_STATUS_TRANSITIONS: Dict[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.ACTIVE: frozenset({PaymentStatus.VOIDED}),
    PaymentStatus.VOIDED: frozenset(),
}

# Statuses in which the linked stock unit may still be swapped for another
STOCK_ASSIGNABLE_STATUSES: FrozenSet[SaleStatus] = frozenset(
    {SaleStatus.DRAFT, SaleStatus.RESERVED, SaleStatus.CONTRACTED}
)


def _as_status(value: Union[SaleStatus, str]) -> SaleStatus:
    return value if isinstance(value, SaleStatus) else SaleStatus.from_string(value)


def validate_sale_status_transition(
    current: Union[SaleStatus, str],
    new: Union[SaleStatus, str],
) -> bool:
    """Check whether ``new`` is in the allowed-next set of ``current``."""
    try:
        current_status = _as_status(current)
        new_status = _as_status(new)
    except ValueError:
        return False
    return new_status in SALE_STATUS_TRANSITIONS.get(current_status, frozenset())


def get_allowed_sale_transitions(current: Union[SaleStatus, str]) -> FrozenSet[SaleStatus]:
    """Allowed next statuses for ``current``, empty for final statuses."""
    return SALE_STATUS_TRANSITIONS.get(_as_status(current), frozenset())


def validate_payment_status_transition(
    current: PaymentStatus,
    new: PaymentStatus,
) -> bool:
    return new in PAYMENT_STATUS_TRANSITIONS.get(current, frozenset())
