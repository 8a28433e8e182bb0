"""
Models package - imports all database models
"""
from app.database import Base
from app.models.base import TimestampMixin, utcnow
from app.models.organization import Organization
from app.models.user import User, OrganizationPermission
from app.models.invitation import Invitation
from app.models.audit import ActivityLog
from app.models.inspection import Inspection, InspectionCollaborator, ActionItem, ChecklistTemplate

# Export all models for easy import
__all__ = [
    "Base",
    "TimestampMixin",
    "utcnow",
    "Organization",
    "User",
    "OrganizationPermission",
    "Invitation",
    "ActivityLog",
    "Inspection",
    "InspectionCollaborator",
    "ActionItem",
    "ChecklistTemplate",
]
