"""
Activity log model for tracking mutations
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base


class ActivityLog(Base):
    """Append-only audit record, never updated or deleted"""
    __tablename__ = "activity_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), ForeignKey("users.id"), nullable=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=True)

    action_type = Column(String(100), nullable=False)  # e.g. 'organization_created', 'user_invited'
    action_description = Column(Text, nullable=False)
    target_type = Column(String(50))  # 'organization', 'user', 'invitation', 'permission'
    target_id = Column(String(255))

    ip_address = Column(String(45))
    user_agent = Column(Text)
    details = Column(Text)  # JSON string with additional details

    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    # Relationships
    user = relationship("User")
    organization = relationship("Organization")

    __table_args__ = (
        Index('ix_activity_log_user_id', 'user_id'),
        Index('ix_activity_log_organization_id', 'organization_id'),
        Index('ix_activity_log_action_type', 'action_type'),
        Index('ix_activity_log_created_at', 'created_at'),
    )
