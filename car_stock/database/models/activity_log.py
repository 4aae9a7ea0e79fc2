"""Activity log model: who did what to which entity."""

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import DateTime, Index, String, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from car_stock.database.base import Base, UUIDMixin, create_table_args


class ActivityLog(Base, UUIDMixin):
    """Append-only record of user actions on sales, stock and payments."""

    __tablename__ = "activity_logs"

    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)

    action: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="CREATE, UPDATE, TRANSITION, VOID, ...",
    )

    entity: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Entity type such as sale, stock or payment",
    )

    entity_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    details: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONB, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = create_table_args(
        Index("ix_activity_logs_entity", "entity", "entity_id"),
        Index("ix_activity_logs_user_created", "user_id", "created_at"),
        comment="User activity audit trail",
    )
