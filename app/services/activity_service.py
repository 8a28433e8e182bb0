"""
Activity log service layer
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import desc
from typing import Optional, List, Dict, Any
from app.models import ActivityLog, User
from app.scoping import Resource, scoped_select
import logging
import json

logger = logging.getLogger(__name__)


class ActivityService:

    def __init__(self, db: AsyncSession):
        self.db = db

    def log(
        self,
        action_type: str,
        description: str,
        user_id: Optional[str] = None,
        organization_id: Optional[int] = None,
        target_type: Optional[str] = None,
        target_id=None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> ActivityLog:
        """
        Append an entry to the caller's unit of work.

        Nothing is flushed here: the entry commits together with the mutation
        it describes, or not at all.
        """
        entry = ActivityLog(
            user_id=user_id,
            organization_id=organization_id,
            action_type=action_type,
            action_description=description,
            target_type=target_type,
            target_id=str(target_id) if target_id is not None else None,
            details=json.dumps(details, default=str) if details else None,
            ip_address=ip_address,
            user_agent=user_agent
        )
        self.db.add(entry)
        return entry

    async def list_activity(
        self,
        actor: User,
        organization_id: Optional[int] = None,
        action_type: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[ActivityLog]:
        """Activity entries inside the actor's scope, newest first"""
        stmt = scoped_select(actor, Resource.ACTIVITY_LOG, organization_id=organization_id)

        if action_type:
            stmt = stmt.where(ActivityLog.action_type == action_type)

        stmt = stmt.order_by(desc(ActivityLog.created_at), desc(ActivityLog.id)).limit(limit).offset(offset)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())
