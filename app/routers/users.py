"""
User directory API routes
"""
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List
from app.config import settings
from app.database import get_async_session
from app.schemas import (
    UserUpdate, UserResponse, UserStats, CurrentUserResponse, OrganizationResponse,
    OrganizationPermissionCreate, OrganizationPermissionResponse, PaginatedResponse,
    MessageResponse, Identity
)
from app.roles import Capability
from app.services.user_service import UserService
from app.services.permission_service import PermissionService
from app.dependencies import get_current_identity, get_current_user, get_current_system_admin, require_capability
from app.models import User
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=CurrentUserResponse)
async def get_current_user_profile(
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_async_session)
):
    """Get (or on first login create) the caller's profile with organizations and grants"""
    user_service = UserService(db)
    provisioned = await user_service.get_or_provision_user(identity)

    if not provisioned.user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive"
        )

    return CurrentUserResponse(
        profile=UserResponse.model_validate(provisioned.user),
        organization=OrganizationResponse.model_validate(provisioned.organization) if provisioned.organization else None,
        managed_organization=(
            OrganizationResponse.model_validate(provisioned.managed_organization)
            if provisioned.managed_organization else None
        ),
        permissions=[OrganizationPermissionResponse.model_validate(p) for p in provisioned.permissions]
    )


@router.put("/me", response_model=UserResponse)
async def update_current_user_profile(
    user_data: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    """Update the caller's own profile"""
    user_service = UserService(db)
    return await user_service.update_user(current_user, current_user.id, user_data)


@router.get("", response_model=PaginatedResponse[UserResponse])
async def list_users(
    organization_id: Optional[int] = Query(None, description="Restrict to one organization in scope"),
    is_active: Optional[bool] = Query(None, description="Filter by active status"),
    search: Optional[str] = Query(None, description="Search by name or email"),
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size, description="Page size"),
    current_user: User = Depends(require_capability(Capability.VIEW_USERS)),
    db: AsyncSession = Depends(get_async_session)
):
    """List users in the caller's scope"""
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


@router.get("/stats", response_model=UserStats)
async def get_user_stats(
    current_user: User = Depends(require_capability(Capability.VIEW_USERS)),
    db: AsyncSession = Depends(get_async_session)
):
    """User statistics for the caller's scope"""
    user_service = UserService(db)
    return await user_service.get_user_stats(current_user)


@router.delete("/permissions/{permission_id}", response_model=OrganizationPermissionResponse)
async def revoke_permission(
    permission_id: int,
    current_user: User = Depends(require_capability(Capability.GRANT_PERMISSIONS)),
    db: AsyncSession = Depends(get_async_session)
):
    """Revoke an organization permission grant"""
    permission_service = PermissionService(db)
    return await permission_service.revoke_permission(current_user, permission_id)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    """Get a user in the caller's scope"""
    user_service = UserService(db)
    return await user_service.get_user(current_user, user_id)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    user_data: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    """
    Update a user:
    - Self: name, phone, home organization within scope
    - System Admin / Org Admin of the user's organization: role, status, organization
    """
    user_service = UserService(db)
    return await user_service.update_user(current_user, user_id, user_data)


@router.delete("/{user_id}", response_model=MessageResponse)
async def deactivate_user(
    user_id: str,
    current_user: User = Depends(get_current_system_admin),
    db: AsyncSession = Depends(get_async_session)
):
    """Deactivate a user (System Admin only)"""
    user_service = UserService(db)
    user = await user_service.deactivate_user(current_user, user_id)
    return MessageResponse(message=f"User {user.email} deactivated successfully")


@router.get("/{user_id}/permissions", response_model=List[OrganizationPermissionResponse])
async def list_user_permissions(
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    """List a user's active organization permission grants"""
    permission_service = PermissionService(db)
    return await permission_service.list_user_permissions(current_user, user_id)


@router.post("/{user_id}/permissions", response_model=OrganizationPermissionResponse, status_code=status.HTTP_201_CREATED)
async def grant_permission(
    user_id: str,
    permission_data: OrganizationPermissionCreate,
    current_user: User = Depends(require_capability(Capability.GRANT_PERMISSIONS)),
    db: AsyncSession = Depends(get_async_session)
):
    """Grant a user a permission on an organization the caller manages"""
    permission_service = PermissionService(db)
    return await permission_service.grant_permission(current_user, user_id, permission_data)
