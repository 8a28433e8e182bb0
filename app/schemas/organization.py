"""
Organization-related schemas
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import date
from decimal import Decimal
from app.schemas.base import (
    TimestampSchema, OrganizationLevel, OrganizationType, SubscriptionPlan, SubscriptionStatus
)


class OrganizationProfile(BaseModel):
    """Descriptive fields, opaque to authorization"""
    description: Optional[str] = None
    logo_url: Optional[str] = Field(None, max_length=500)
    contact_email: Optional[str] = Field(None, max_length=255)
    contact_phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None
    registration_number: Optional[str] = Field(None, max_length=32)
    legal_name: Optional[str] = Field(None, max_length=255)
    trade_name: Optional[str] = Field(None, max_length=255)
    primary_activity_code: Optional[str] = Field(None, max_length=20)
    primary_activity_description: Optional[str] = None
    legal_nature: Optional[str] = Field(None, max_length=255)
    opening_date: Optional[date] = None
    share_capital: Optional[Decimal] = None
    company_size: Optional[str] = Field(None, max_length=50)
    registration_status: Optional[str] = Field(None, max_length=50)
    employee_count: Optional[int] = Field(None, ge=0)
    annual_revenue: Optional[Decimal] = None
    website: Optional[str] = Field(None, max_length=500)
    industry_sector: Optional[str] = Field(None, max_length=100)
    industry_subsector: Optional[str] = Field(None, max_length=100)
    safety_certifications: Optional[str] = None
    last_audit_date: Optional[date] = None
    risk_level: Optional[str] = Field(None, max_length=20)
    safety_contact_name: Optional[str] = Field(None, max_length=255)
    safety_contact_email: Optional[str] = Field(None, max_length=255)
    safety_contact_phone: Optional[str] = Field(None, max_length=50)
    incident_history: Optional[str] = None
    compliance_notes: Optional[str] = None


class OrganizationCreate(OrganizationProfile):
    name: str = Field(..., min_length=1, max_length=255)
    type: OrganizationType = OrganizationType.COMPANY
    parent_organization_id: Optional[int] = None
    organization_level: Optional[OrganizationLevel] = None
    subscription_plan: SubscriptionPlan = SubscriptionPlan.BASIC
    max_users: int = Field(default=50, ge=1, le=100000)
    max_subsidiaries: int = Field(default=0, ge=0, le=10000)


class OrganizationUpdate(OrganizationProfile):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    type: Optional[OrganizationType] = None
    subscription_plan: Optional[SubscriptionPlan] = None
    subscription_status: Optional[SubscriptionStatus] = None
    max_users: Optional[int] = Field(None, ge=1, le=100000)
    max_subsidiaries: Optional[int] = Field(None, ge=0, le=10000)


class OrganizationStatusUpdate(BaseModel):
    is_active: bool


class OrganizationResponse(OrganizationProfile, TimestampSchema):
    id: int
    name: str
    type: str
    organization_level: str
    parent_organization_id: Optional[int] = None
    subscription_status: str
    subscription_plan: str
    max_users: int
    max_subsidiaries: int
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class OrganizationSummary(OrganizationResponse):
    """Organization row with the hierarchy counters used by listings"""
    user_count: int = 0
    subsidiary_count: int = 0
    parent_organization_name: Optional[str] = None


class OrganizationCreated(BaseModel):
    id: int
    message: str = "Organization created successfully"


class OrganizationListResponse(BaseModel):
    organizations: List[OrganizationSummary]
    user_role: Optional[str] = None
    can_manage: bool = False


class OrganizationStats(BaseModel):
    organization_id: int
    name: str
    is_active: bool
    active_users: int
    total_users: int
    max_users: int
    active_subsidiaries: int
    max_subsidiaries: int
    pending_invitations: int
    user_capacity_percentage: float
    subsidiary_capacity_percentage: float

    model_config = ConfigDict(from_attributes=True)
