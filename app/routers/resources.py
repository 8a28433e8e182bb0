"""
Scoped read endpoints for inspection-side resources
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from typing import Optional, List
from app.database import get_async_session
from app.dependencies import require_capability
from app.models import User, ActionItem, ChecklistTemplate, Inspection
from app.roles import Capability
from app.schemas import InspectionSummary, ActionItemSummary, ChecklistTemplateSummary
from app.scoping import Resource, scoped_select, template_visibility_predicate
import logging

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Inspections"])


@router.get("/inspections", response_model=List[InspectionSummary])
async def list_inspections(
    organization_id: Optional[int] = Query(None, description="Restrict to one organization in scope"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(require_capability(Capability.VIEW_INSPECTIONS)),
    db: AsyncSession = Depends(get_async_session)
):
    """Inspections visible to the caller"""
    stmt = scoped_select(current_user, Resource.INSPECTIONS, organization_id=organization_id)
    stmt = stmt.order_by(desc(Inspection.created_at), desc(Inspection.id)).limit(limit).offset(offset)

    result = await db.execute(stmt)
    return result.scalars().all()


@router.get("/action-items", response_model=List[ActionItemSummary])
async def list_action_items(
    organization_id: Optional[int] = Query(None, description="Restrict to one organization in scope"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(require_capability(Capability.VIEW_INSPECTIONS)),
    db: AsyncSession = Depends(get_async_session)
):
    """Action items of inspections visible to the caller"""
    stmt = scoped_select(current_user, Resource.ACTION_ITEMS, organization_id=organization_id)
    stmt = stmt.order_by(desc(ActionItem.created_at), desc(ActionItem.id)).limit(limit).offset(offset)

    result = await db.execute(stmt)
    return result.scalars().all()


@router.get("/checklist-templates", response_model=List[ChecklistTemplateSummary])
async def list_checklist_templates(
    current_user: User = Depends(require_capability(Capability.VIEW_INSPECTIONS)),
    db: AsyncSession = Depends(get_async_session)
):
    """Public templates, the caller's organization's templates and their own"""
    stmt = (
        select(ChecklistTemplate)
        .where(template_visibility_predicate(current_user))
        .order_by(ChecklistTemplate.name, ChecklistTemplate.id)
    )

    result = await db.execute(stmt)
    return result.scalars().all()
