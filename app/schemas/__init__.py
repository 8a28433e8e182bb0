"""
Schemas package - imports all Pydantic schemas
"""
from app.schemas.base import (
    OrganizationLevel, OrganizationType, SubscriptionPlan, SubscriptionStatus,
    InvitationStatus, PermissionType, TimestampSchema, MessageResponse,
    PaginatedResponse, Identity
)
from app.schemas.organization import (
    OrganizationProfile, OrganizationCreate, OrganizationUpdate, OrganizationStatusUpdate,
    OrganizationResponse, OrganizationSummary, OrganizationCreated,
    OrganizationListResponse, OrganizationStats
)
from app.schemas.user import (
    UserUpdate, UserResponse, OrganizationPermissionCreate,
    OrganizationPermissionResponse, CurrentUserResponse, UserStats
)
from app.schemas.invitation import (
    InvitationCreate, InvitationCreated, InvitationResponse,
    InvitationDetails, InvitationAccepted
)
from app.schemas.audit import ActivityLogResponse, ActivityLogList
from app.schemas.inspection import InspectionSummary, ActionItemSummary, ChecklistTemplateSummary
