"""
Role based permission table.

One static table maps every action to the roles allowed to perform it. The
API consults it to reject requests early and to tell the UI which actions to
show; the sale and payment services consult it again before acting, so the
services stay safe when called without the HTTP layer.
"""

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional, Union

from car_stock.core.logging import get_logger
from car_stock.database.models.user import UserRole

logger = get_logger(__name__)


class Action(str, Enum):
    """Closed set of permission-checked actions."""

    USER_VIEW = "USER_VIEW"
    USER_CREATE = "USER_CREATE"
    USER_UPDATE = "USER_UPDATE"
    USER_DELETE = "USER_DELETE"

    CUSTOMER_VIEW = "CUSTOMER_VIEW"
    CUSTOMER_CREATE = "CUSTOMER_CREATE"
    CUSTOMER_UPDATE = "CUSTOMER_UPDATE"
    CUSTOMER_DELETE = "CUSTOMER_DELETE"

    STOCK_VIEW = "STOCK_VIEW"
    STOCK_CREATE = "STOCK_CREATE"
    STOCK_UPDATE = "STOCK_UPDATE"
    STOCK_DELETE = "STOCK_DELETE"

    SALE_VIEW = "SALE_VIEW"
    SALE_CREATE = "SALE_CREATE"
    SALE_UPDATE = "SALE_UPDATE"
    SALE_TRANSITION = "SALE_TRANSITION"
    SALE_DELETE = "SALE_DELETE"

    PAYMENT_VIEW = "PAYMENT_VIEW"
    PAYMENT_CREATE = "PAYMENT_CREATE"
    PAYMENT_VOID = "PAYMENT_VOID"
    PAYMENT_VOID_OVERRIDE = "PAYMENT_VOID_OVERRIDE"
    PAYMENT_OVERPAYMENT_OVERRIDE = "PAYMENT_OVERPAYMENT_OVERRIDE"

    REPORT_SALES = "REPORT_SALES"
    REPORT_STOCK = "REPORT_STOCK"
    REPORT_FINANCE = "REPORT_FINANCE"


_ALL_ROLES: FrozenSet[UserRole] = frozenset(UserRole)
_SALES_ROLES = frozenset({UserRole.ADMIN, UserRole.SALES_MANAGER, UserRole.SALES_STAFF})

ROLE_PERMISSIONS: Dict[Action, FrozenSet[UserRole]] = {
    Action.USER_VIEW: frozenset({UserRole.ADMIN}),
    Action.USER_CREATE: frozenset({UserRole.ADMIN}),
    Action.USER_UPDATE: frozenset({UserRole.ADMIN}),
    Action.USER_DELETE: frozenset({UserRole.ADMIN}),
    Action.CUSTOMER_VIEW: frozenset(
        {UserRole.ADMIN, UserRole.SALES_MANAGER, UserRole.SALES_STAFF, UserRole.ACCOUNTANT}
    ),
    Action.CUSTOMER_CREATE: _SALES_ROLES,
    Action.CUSTOMER_UPDATE: _SALES_ROLES,
    Action.CUSTOMER_DELETE: frozenset({UserRole.ADMIN}),
    Action.STOCK_VIEW: _ALL_ROLES,
    Action.STOCK_CREATE: frozenset({UserRole.ADMIN, UserRole.STOCK_STAFF}),
    Action.STOCK_UPDATE: frozenset({UserRole.ADMIN, UserRole.STOCK_STAFF}),
    Action.STOCK_DELETE: frozenset({UserRole.ADMIN}),
    Action.SALE_VIEW: _ALL_ROLES,
    Action.SALE_CREATE: _SALES_ROLES,
    Action.SALE_UPDATE: _SALES_ROLES,
    Action.SALE_TRANSITION: _SALES_ROLES,
    Action.SALE_DELETE: frozenset({UserRole.ADMIN}),
    Action.PAYMENT_VIEW: _ALL_ROLES,
    Action.PAYMENT_CREATE: frozenset(
        {UserRole.ADMIN, UserRole.ACCOUNTANT, UserRole.SALES_STAFF}
    ),
    Action.PAYMENT_VOID: frozenset({UserRole.ADMIN, UserRole.ACCOUNTANT}),
    Action.PAYMENT_VOID_OVERRIDE: frozenset({UserRole.ADMIN}),
    Action.PAYMENT_OVERPAYMENT_OVERRIDE: frozenset({UserRole.ADMIN}),
    Action.REPORT_SALES: frozenset({UserRole.ADMIN, UserRole.SALES_MANAGER}),
    Action.REPORT_STOCK: frozenset(
        {UserRole.ADMIN, UserRole.SALES_MANAGER, UserRole.STOCK_STAFF}
    ),
    Action.REPORT_FINANCE: frozenset({UserRole.ADMIN, UserRole.ACCOUNTANT}),
}


@dataclass(frozen=True)
class Actor:
    """The authenticated user an operation is performed for."""

    user_id: uuid.UUID
    role: UserRole

    def can(self, action: Union[Action, str]) -> bool:
        return can_perform(self.role, action)


def _coerce_role(role: Union[UserRole, str, None]) -> Optional[UserRole]:
    if isinstance(role, UserRole):
        return role
    if not isinstance(role, str):
        return None
    try:
        return UserRole.from_string(role)
    except ValueError:
        return None


def _coerce_action(action: Union[Action, str, None]) -> Optional[Action]:
    if isinstance(action, Action):
        return action
    if not isinstance(action, str):
        return None
    try:
        return Action(action.strip().upper())
    except ValueError:
        return None


def can_perform(role: Union[UserRole, str, None], action: Union[Action, str, None]) -> bool:
    """
    Check whether a role may perform an action.

    Unknown roles and unknown actions are denied rather than raising.

    Example:
        >>> can_perform(UserRole.SALES_STAFF, Action.SALE_TRANSITION)
        True
        >>> can_perform("STOCK_STAFF", "SALE_TRANSITION")
        False
    """
    resolved_role = _coerce_role(role)
    resolved_action = _coerce_action(action)

    if resolved_role is None or resolved_action is None:
        logger.debug(
            "Permission check on unknown role or action",
            role=str(role),
            action=str(action),
        )
        return False

    return resolved_role in ROLE_PERMISSIONS.get(resolved_action, frozenset())


def permissions_for_role(role: Union[UserRole, str, None]) -> FrozenSet[Action]:
    """All actions a role may perform; empty for unknown roles."""
    resolved_role = _coerce_role(role)
    if resolved_role is None:
        return frozenset()
    return frozenset(
        action for action, roles in ROLE_PERMISSIONS.items() if resolved_role in roles
    )
