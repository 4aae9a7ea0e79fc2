"""
Current user endpoints.

``/me/permissions`` lets the UI hide actions the user's role cannot perform,
using the same table the services enforce.
"""

from fastapi import APIRouter

from car_stock.api.deps import CurrentActor
from car_stock.schemas.auth import PermissionsResponse
from car_stock.services.auth.permissions import permissions_for_role

router = APIRouter(prefix="/me", tags=["me"])


@router.get("/permissions", response_model=PermissionsResponse)
async def my_permissions(actor: CurrentActor) -> PermissionsResponse:
    actions = sorted(action.value for action in permissions_for_role(actor.role))
    return PermissionsResponse(user_id=actor.user_id, role=actor.role, actions=actions)
