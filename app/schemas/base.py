"""
Base schemas and common types
"""
from pydantic import BaseModel
from datetime import datetime
from enum import Enum
from typing import Generic, TypeVar, List, Optional

T = TypeVar('T')


class OrganizationLevel(str, Enum):
    MASTER = "master"
    COMPANY = "company"
    SUBSIDIARY = "subsidiary"


class OrganizationType(str, Enum):
    MASTER = "master"
    COMPANY = "company"
    CONSULTANCY = "consultancy"
    CLIENT = "client"


class SubscriptionPlan(str, Enum):
    BASIC = "basic"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    TRIAL = "trial"
    EXPIRED = "expired"


class InvitationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REVOKED = "revoked"


class PermissionType(str, Enum):
    VIEW = "view"
    EDIT = "edit"
    ADMIN = "admin"
    OWNER = "owner"


class TimestampSchema(BaseModel):
    created_at: datetime
    updated_at: datetime


class MessageResponse(BaseModel):
    message: str
    status: str = "success"


class PaginatedResponse(BaseModel, Generic[T]):
    items: List[T]
    total: int
    page: int
    size: int
    pages: int


class Identity(BaseModel):
    """Authenticated principal as asserted by the identity provider"""
    id: str
    email: str
    name: Optional[str] = None
