"""Authentication related schemas."""

from uuid import UUID

from pydantic import BaseModel

from car_stock.database.models.user import UserRole


class TokenPayload(BaseModel):
    """Claims this service reads from a bearer token."""

    sub: UUID


class PermissionsResponse(BaseModel):
    """Role and allowed actions of the current user, for hiding UI actions."""

    user_id: UUID
    role: UserRole
    actions: list[str]
