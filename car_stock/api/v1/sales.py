"""
Sale lifecycle API endpoints.

Sale creation, status transitions and stock assignment. Business failures
come back from the lifecycle service as typed results and are raised here
as ``DomainError`` so the application-wide handler renders them with their
error code and HTTP status.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status

from car_stock.api.deps import SaleService, require_permission
from car_stock.api.rate_limit import limiter
from car_stock.core.config import get_settings
from car_stock.core.logging import get_logger
from car_stock.schemas.sales import (
    AllowedTransitionsResponse,
    SaleCreateRequest,
    SaleResponse,
    SaleTransitionRequest,
    StockAssignmentRequest,
)
from car_stock.services.auth.permissions import Action, Actor

logger = get_logger(__name__)
settings = get_settings()

router = APIRouter(prefix="/sales", tags=["sales"])


@router.post(
    "",
    response_model=SaleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create sale",
    description="Open a DRAFT sale and reserve its stock unit if one is given",
)
async def create_sale(
    payload: SaleCreateRequest,
    service: SaleService,
    actor: Annotated[Actor, Depends(require_permission(Action.SALE_CREATE))],
) -> SaleResponse:
    result = await service.create_sale(
        customer_id=payload.customer_id,
        total_amount=payload.total_amount,
        actor=actor,
        stock_id=payload.stock_id,
        sale_type=payload.sale_type,
        notes=payload.notes,
    )
    return SaleResponse.model_validate(result.unwrap())


@router.get(
    "/{sale_id}",
    response_model=SaleResponse,
    summary="Get sale",
)
async def get_sale(
    sale_id: UUID,
    service: SaleService,
    actor: Annotated[Actor, Depends(require_permission(Action.SALE_VIEW))],
) -> SaleResponse:
    sale = await service.get_sale(sale_id, actor)
    return SaleResponse.model_validate(sale)


@router.get(
    "/{sale_id}/transitions",
    response_model=AllowedTransitionsResponse,
    summary="List allowed transitions",
    description="Statuses the current user may request; guards are checked on submit",
)
async def list_allowed_transitions(
    sale_id: UUID,
    service: SaleService,
    actor: Annotated[Actor, Depends(require_permission(Action.SALE_VIEW))],
) -> AllowedTransitionsResponse:
    sale, allowed = await service.get_allowed_transitions(sale_id, actor)
    return AllowedTransitionsResponse(
        sale_id=sale.id,
        current_status=sale.status,
        allowed_transitions=allowed,
    )


@router.post(
    "/{sale_id}/transitions",
    response_model=SaleResponse,
    summary="Transition sale status",
    responses={
        403: {"description": "Role may not change sale status"},
        409: {"description": "Illegal transition, stock conflict or concurrent update"},
        422: {"description": "Guard failed"},
        503: {"description": "Database unavailable"},
    },
)
@limiter.limit(settings.transition_rate_limit)
async def transition_sale(
    request: Request,
    sale_id: UUID,
    payload: SaleTransitionRequest,
    service: SaleService,
    actor: Annotated[Actor, Depends(require_permission(Action.SALE_VIEW))],
) -> SaleResponse:
    """
    Apply a status transition.

    Authorization for the transition itself is decided by the lifecycle
    engine so the error ordering is the same for every caller.
    """
    result = await service.transition(
        sale_id,
        payload.target_status,
        actor,
        notes=payload.notes,
    )
    if not result.ok:
        logger.info(
            "Sale transition refused",
            sale_id=str(sale_id),
            target_status=payload.target_status,
            code=result.error.code,
        )
    return SaleResponse.model_validate(result.unwrap())


@router.put(
    "/{sale_id}/stock",
    response_model=SaleResponse,
    summary="Assign stock unit",
    description="Link the sale to another stock unit, releasing the previous one",
)
async def assign_stock(
    sale_id: UUID,
    payload: StockAssignmentRequest,
    service: SaleService,
    actor: Annotated[Actor, Depends(require_permission(Action.SALE_UPDATE))],
) -> SaleResponse:
    result = await service.assign_stock(sale_id, payload.stock_id, actor, notes=payload.notes)
    return SaleResponse.model_validate(result.unwrap())
