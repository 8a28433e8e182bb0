"""
User-related schemas
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict
from datetime import datetime
from app.roles import UserRole
from app.schemas.base import TimestampSchema, PermissionType
from app.schemas.organization import OrganizationResponse


class UserUpdate(BaseModel):
    # Self-service fields
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    organization_id: Optional[int] = None

    # Administrative fields
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None
    managed_organization_id: Optional[int] = None


class UserResponse(TimestampSchema):
    id: str
    email: str
    name: str
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    role: str
    organization_id: Optional[int] = None
    managed_organization_id: Optional[int] = None
    can_manage_users: bool
    can_create_organizations: bool
    is_active: bool
    last_login_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class OrganizationPermissionCreate(BaseModel):
    organization_id: int
    permission_type: PermissionType


class OrganizationPermissionResponse(BaseModel):
    id: int
    user_id: str
    organization_id: int
    permission_type: str
    granted_by: Optional[str] = None
    granted_at: datetime
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class CurrentUserResponse(BaseModel):
    """Payload of /users/me: profile plus its organizations and grants"""
    profile: UserResponse
    organization: Optional[OrganizationResponse] = None
    managed_organization: Optional[OrganizationResponse] = None
    permissions: List[OrganizationPermissionResponse] = []


class UserStats(BaseModel):
    total_users: int
    active_users: int
    users_by_role: Dict[str, int]
    recent_registrations: int
    users_with_organizations: int
