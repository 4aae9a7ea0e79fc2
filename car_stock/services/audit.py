"""Activity log writer shared by the sale and payment services."""

import uuid
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from car_stock.database.models.activity_log import ActivityLog


class ActivityLogRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    def record(
        self,
        user_id: Optional[uuid.UUID],
        action: str,
        entity: str,
        entity_id: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> ActivityLog:
        """Stage an activity entry; it is written with the surrounding transaction."""
        entry = ActivityLog(
            user_id=user_id,
            action=action,
            entity=entity,
            entity_id=str(entity_id) if entity_id is not None else None,
            details=details,
        )
        self.session.add(entry)
        return entry
