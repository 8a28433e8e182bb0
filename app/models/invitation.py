"""
Invitation model
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from app.database import Base
from app.models.base import TimestampMixin
from app.schemas.base import InvitationStatus


class Invitation(Base, TimestampMixin):
    """Offer to join an organization with a given role"""
    __tablename__ = "user_invitations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False)
    role = Column(String(20), nullable=False)
    invited_by = Column(String(255), ForeignKey("users.id"), nullable=True)
    invitation_token = Column(String(255), unique=True, nullable=False)

    status = Column(String(20), default=InvitationStatus.PENDING.value, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    accepted_at = Column(DateTime)
    accepted_by = Column(String(255), ForeignKey("users.id"), nullable=True)
    revoked_at = Column(DateTime)

    # Relationships
    organization = relationship("Organization")
    inviter = relationship("User", foreign_keys=[invited_by])

    __table_args__ = (
        Index('ix_user_invitations_email_organization', 'email', 'organization_id'),
        Index('ix_user_invitations_status', 'status'),
        Index('ix_user_invitations_expires_at', 'expires_at'),
    )
