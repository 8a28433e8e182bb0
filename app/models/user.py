"""
User model and organization-level permission grants
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from app.database import Base
from app.models.base import TimestampMixin
from app.roles import UserRole


class User(Base, TimestampMixin):
    """Profile of an authenticated principal, keyed by the external identity id"""
    __tablename__ = "users"

    id = Column(String(255), primary_key=True)
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    phone = Column(String(50))
    avatar_url = Column(String(500))

    role = Column(String(20), default=UserRole.INSPECTOR.value, nullable=False)
    can_manage_users = Column(Boolean, default=False, nullable=False)
    can_create_organizations = Column(Boolean, default=False, nullable=False)

    # Home organization, and for org admins the root of the administered subtree
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=True)
    managed_organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    last_login_at = Column(DateTime)

    # Relationships
    organization = relationship("Organization", back_populates="users", foreign_keys=[organization_id])
    managed_organization = relationship("Organization", foreign_keys=[managed_organization_id])

    __table_args__ = (
        Index('ix_users_organization_id', 'organization_id'),
        Index('ix_users_managed_organization_id', 'managed_organization_id'),
        Index('ix_users_role', 'role'),
        Index('ix_users_is_active', 'is_active'),
    )


class OrganizationPermission(Base, TimestampMixin):
    """Explicit per-organization grant held by a user"""
    __tablename__ = "organization_permissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), ForeignKey("users.id"), nullable=False)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False)
    permission_type = Column(String(20), nullable=False)
    granted_by = Column(String(255), ForeignKey("users.id"), nullable=True)
    granted_at = Column(DateTime, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        Index('ix_organization_permissions_user_id', 'user_id'),
        Index('ix_organization_permissions_organization_id', 'organization_id'),
        UniqueConstraint('user_id', 'organization_id', 'permission_type', name='uq_user_organization_permission'),
    )
