"""
FastAPI dependencies for authentication, permissions and services.

The bearer token is decoded to a user id, the user row supplies the role,
and ``require_permission`` checks the shared permission table before the
route runs. Services re-check permissions themselves.
"""

from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from car_stock.core.logging import get_logger, set_actor
from car_stock.core.security import TokenError, decode_access_token
from car_stock.database.connection import get_db
from car_stock.database.models.user import User
from car_stock.schemas.auth import TokenPayload
from car_stock.services.auth.permissions import Action, Actor
from car_stock.services.payments.service import PaymentService, get_payment_service
from car_stock.services.reports.service import ReportingService
from car_stock.services.sales.service import (
    SaleLifecycleService,
    get_sale_lifecycle_service,
)

logger = get_logger(__name__)

security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Validate the bearer token and load the active user it names.

    Raises:
        HTTPException: 401 for a missing or invalid token or unknown user,
            403 for an inactive account
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        logger.warning("Authentication failed: No credentials provided")
        raise credentials_exception

    try:
        payload = decode_access_token(credentials.credentials)
        token_data = TokenPayload(sub=payload["sub"])
    except TokenError as e:
        logger.warning("Authentication failed", code=e.code)
        raise credentials_exception
    except ValidationError:
        logger.warning("Authentication failed: Invalid subject claim")
        raise credentials_exception

    user = await db.get(User, token_data.sub)

    if user is None:
        logger.warning("Authentication failed: User not found", user_id=str(token_data.sub))
        raise credentials_exception

    if not user.is_active:
        logger.warning("Authentication failed: User account is inactive", user_id=str(user.id))
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user account",
        )

    set_actor(str(user.id), user.role.value)
    return user


async def get_current_actor(
    current_user: Annotated[User, Depends(get_current_user)],
) -> Actor:
    return Actor(user_id=current_user.id, role=current_user.role)


def require_permission(action: Action):
    """
    Create a dependency that requires the current actor to hold ``action``.

    Example:
        @router.get("/reports/sales-summary")
        async def summary(actor: Annotated[Actor, Depends(require_permission(Action.REPORT_SALES))]):
            ...
    """

    async def permission_checker(
        actor: Annotated[Actor, Depends(get_current_actor)],
    ) -> Actor:
        if not actor.can(action):
            logger.warning(
                "Access denied: Insufficient permissions",
                user_id=str(actor.user_id),
                role=actor.role.value,
                action=action.value,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error": "UNAUTHORIZED",
                    "message": f"Role {actor.role.value} may not perform {action.value}",
                },
            )
        return actor

    return permission_checker


async def get_reporting_service(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ReportingService:
    return ReportingService(db)


CurrentUser = Annotated[User, Depends(get_current_user)]
CurrentActor = Annotated[Actor, Depends(get_current_actor)]
SaleService = Annotated[SaleLifecycleService, Depends(get_sale_lifecycle_service)]
Payments = Annotated[PaymentService, Depends(get_payment_service)]
Reports = Annotated[ReportingService, Depends(get_reporting_service)]

