"""
Organization hierarchy API routes
"""
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List
from app.config import settings
from app.database import get_async_session
from app.schemas import (
    OrganizationCreate, OrganizationUpdate, OrganizationStatusUpdate, OrganizationResponse,
    OrganizationCreated, OrganizationListResponse, OrganizationStats,
    UserResponse, PaginatedResponse, InvitationCreate, InvitationCreated,
    InvitationResponse, ActivityLogList, ActivityLogResponse
)
from app.roles import UserRole, Capability
from app.scoping import actor_role
from app.services.organization_service import OrganizationService
from app.services.user_service import UserService
from app.services.invitation_service import InvitationService
from app.services.activity_service import ActivityService
from app.dependencies import get_current_user, get_current_admin, get_current_system_admin, require_capability
from app.models import User
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organizations", tags=["Organizations"])


@router.post("", response_model=OrganizationCreated, status_code=status.HTTP_201_CREATED)
async def create_organization(
    org_data: OrganizationCreate,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_async_session)
):
    """
    Create an organization:
    - System Admin: parent taken from the request, or a top-level company
    - Org Admin: always a subsidiary of the managed organization
    """
    org_service = OrganizationService(db)
    organization = await org_service.create_organization(current_user, org_data)
    return OrganizationCreated(id=organization.id)


@router.get("", response_model=OrganizationListResponse)
async def list_organizations(
    organization_id: Optional[int] = Query(None, description="Restrict to one organization in scope"),
    search: Optional[str] = Query(None, description="Search by name, trade name or registration number"),
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(settings.max_page_size, ge=1, le=settings.max_page_size, description="Page size"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    """List organizations in the caller's scope"""
    org_service = OrganizationService(db)
    organizations = await org_service.list_organizations_in_scope(
        current_user, organization_id=organization_id, search=search, page=page, size=size
    )

    role = actor_role(current_user)
    return OrganizationListResponse(
        organizations=organizations,
        user_role=role.value if role else None,
        can_manage=role in (UserRole.SYSTEM_ADMIN, UserRole.ORG_ADMIN)
    )


@router.get("/{organization_id}", response_model=OrganizationResponse)
async def get_organization(
    organization_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    """Get an organization in the caller's scope"""
    org_service = OrganizationService(db)
    return await org_service.get_organization(current_user, organization_id)


@router.put("/{organization_id}", response_model=OrganizationResponse)
async def update_organization(
    organization_id: int,
    org_data: OrganizationUpdate,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_async_session)
):
    """
    Update organization:
    - System Admin: any organization, including subscription and limits
    - Org Admin: managed organization or a direct subsidiary, profile fields only
    """
    org_service = OrganizationService(db)
    return await org_service.update_organization(current_user, organization_id, org_data)


@router.patch("/{organization_id}/status", response_model=OrganizationResponse)
async def set_organization_status(
    organization_id: int,
    status_data: OrganizationStatusUpdate,
    current_user: User = Depends(get_current_system_admin),
    db: AsyncSession = Depends(get_async_session)
):
    """Activate or deactivate an organization (System Admin only)"""
    org_service = OrganizationService(db)
    return await org_service.set_organization_active(current_user, organization_id, status_data.is_active)


@router.get("/{organization_id}/stats", response_model=OrganizationStats)
async def get_organization_stats(
    organization_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    """Get organization usage statistics"""
    org_service = OrganizationService(db)
    return await org_service.get_organization_stats(current_user, organization_id)


@router.get("/{organization_id}/users", response_model=PaginatedResponse[UserResponse])
async def list_organization_users(
    organization_id: int,
    is_active: Optional[bool] = Query(None, description="Filter by active status"),
    search: Optional[str] = Query(None, description="Search by name or email"),
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size, description="Page size"),
    current_user: User = Depends(require_capability(Capability.VIEW_USERS)),
    db: AsyncSession = Depends(get_async_session)
):
    """List the members of an organization in the caller's scope"""
    user_service = UserService(db)
    users, total = await user_service.list_users_in_scope(
        current_user,
        organization_id=organization_id,
        is_active=is_active,
        search=search,
        page=page,
        size=size
    )

    return PaginatedResponse(
        items=[UserResponse.model_validate(user) for user in users],
        total=total,
        page=page,
        size=size,
        pages=(total + size - 1) // size
    )


@router.post("/{organization_id}/invitations", response_model=InvitationCreated, status_code=status.HTTP_201_CREATED)
async def create_invitation(
    organization_id: int,
    invitation_data: InvitationCreate,
    current_user: User = Depends(require_capability(Capability.INVITE_USERS)),
    db: AsyncSession = Depends(get_async_session)
):
    """Invite a user into an organization the caller manages"""
    invitation_service = InvitationService(db)
    return await invitation_service.create_invitation(current_user, organization_id, invitation_data)


@router.get("/{organization_id}/invitations", response_model=List[InvitationResponse])
async def list_organization_invitations(
    organization_id: int,
    current_user: User = Depends(require_capability(Capability.INVITE_USERS)),
    db: AsyncSession = Depends(get_async_session)
):
    """List pending invitations of an organization the caller manages"""
    invitation_service = InvitationService(db)
    return await invitation_service.list_pending_invitations(current_user, organization_id=organization_id)


@router.get("/{organization_id}/activity", response_model=ActivityLogList)
async def list_organization_activity(
    organization_id: int,
    action_type: Optional[str] = Query(None, description="Filter by action type"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(require_capability(Capability.VIEW_ACTIVITY)),
    db: AsyncSession = Depends(get_async_session)
):
    """Activity recorded against an organization in the caller's scope"""
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
