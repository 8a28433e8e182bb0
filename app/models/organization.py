"""
Organization model
"""
from sqlalchemy import Column, Integer, String, Boolean, Text, Date, Numeric, ForeignKey, Index
from sqlalchemy.orm import relationship
from app.database import Base
from app.models.base import TimestampMixin
from app.schemas.base import OrganizationLevel, OrganizationType, SubscriptionPlan, SubscriptionStatus


class Organization(Base, TimestampMixin):
    """Tenant or sub-tenant in a two-level hierarchy"""
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    type = Column(String(50), default=OrganizationType.COMPANY.value, nullable=False)
    description = Column(Text)
    logo_url = Column(String(500))
    contact_email = Column(String(255))
    contact_phone = Column(String(50))
    address = Column(Text)
    is_active = Column(Boolean, default=True, nullable=False)

    # Hierarchy
    parent_organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=True)
    organization_level = Column(String(20), default=OrganizationLevel.COMPANY.value, nullable=False)

    # Subscription and limits
    subscription_status = Column(String(20), default=SubscriptionStatus.ACTIVE.value, nullable=False)
    subscription_plan = Column(String(20), default=SubscriptionPlan.BASIC.value, nullable=False)
    max_users = Column(Integer, default=50, nullable=False)
    max_subsidiaries = Column(Integer, default=0, nullable=False)

    # Company profile
    registration_number = Column(String(32))
    legal_name = Column(String(255))
    trade_name = Column(String(255))
    primary_activity_code = Column(String(20))
    primary_activity_description = Column(Text)
    legal_nature = Column(String(255))
    opening_date = Column(Date)
    share_capital = Column(Numeric(18, 2))
    company_size = Column(String(50))
    registration_status = Column(String(50))
    employee_count = Column(Integer)
    annual_revenue = Column(Numeric(18, 2))
    website = Column(String(500))

    # Safety profile
    industry_sector = Column(String(100))
    industry_subsector = Column(String(100))
    safety_certifications = Column(Text)
    last_audit_date = Column(Date)
    risk_level = Column(String(20), default="medio")
    safety_contact_name = Column(String(255))
    safety_contact_email = Column(String(255))
    safety_contact_phone = Column(String(50))
    incident_history = Column(Text)
    compliance_notes = Column(Text)

    # Relationships
    parent_organization = relationship("Organization", remote_side=[id], back_populates="subsidiaries")
    subsidiaries = relationship("Organization", back_populates="parent_organization")
    users = relationship("User", back_populates="organization", foreign_keys="User.organization_id")

    __table_args__ = (
        Index('ix_organizations_parent_organization_id', 'parent_organization_id'),
        Index('ix_organizations_is_active', 'is_active'),
        Index('ix_organizations_organization_level', 'organization_level'),
    )
