"""
Activity log API routes
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from app.database import get_async_session
from app.dependencies import require_capability
from app.models import User
from app.roles import Capability
from app.schemas import ActivityLogList, ActivityLogResponse
from app.services.activity_service import ActivityService
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/activity", tags=["Activity Log"])


@router.get("", response_model=ActivityLogList)
async def list_activity(
    organization_id: Optional[int] = Query(None, description="Restrict to one organization in scope"),
    action_type: Optional[str] = Query(None, description="Filter by action type"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(require_capability(Capability.VIEW_ACTIVITY)),
    db: AsyncSession = Depends(get_async_session)
):
    """
    List activity with scoping:
    - System Admin: every organization
    - Org Admin: managed organization and its subsidiaries
    - Others: their own organization
    """
    activity_service = ActivityService(db)
    activities = await activity_service.list_activity(
        current_user,
        organization_id=organization_id,
        action_type=action_type,
        limit=limit,
        offset=offset
    )

    return ActivityLogList(
        activities=[ActivityLogResponse.model_validate(activity) for activity in activities],
        limit=limit,
        offset=offset
    )
