"""
Services package initialization for SafeScope.
Imports all service classes for tenancy and authorization operations.
"""

from .activity_service import ActivityService
from .organization_service import OrganizationService
from .user_service import UserService, ProvisionedUser
from .invitation_service import InvitationService
from .permission_service import PermissionService

__all__ = [
    "ActivityService",
    "OrganizationService",
    "UserService",
    "ProvisionedUser",
    "InvitationService",
    "PermissionService",
]
