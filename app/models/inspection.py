"""
Inspection-side tables owned by the inspection endpoints.

Only the columns the authorization layer reads are modelled here.
"""
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, Index
from sqlalchemy.orm import relationship
from app.database import Base
from app.models.base import TimestampMixin


class Inspection(Base, TimestampMixin):
    __tablename__ = "inspections"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    status = Column(String(30), default="pendente", nullable=False)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=True)
    created_by = Column(String(255), ForeignKey("users.id"), nullable=False)

    collaborators = relationship("InspectionCollaborator", back_populates="inspection", cascade="all, delete-orphan")
    action_items = relationship("ActionItem", back_populates="inspection", cascade="all, delete-orphan")

    __table_args__ = (
        Index('ix_inspections_organization_id', 'organization_id'),
        Index('ix_inspections_created_by', 'created_by'),
    )


class InspectionCollaborator(Base, TimestampMixin):
    __tablename__ = "inspection_collaborators"

    id = Column(Integer, primary_key=True, autoincrement=True)
    inspection_id = Column(Integer, ForeignKey("inspections.id"), nullable=False)
    user_id = Column(String(255), ForeignKey("users.id"), nullable=False)
    status = Column(String(20), default="active", nullable=False)

    inspection = relationship("Inspection", back_populates="collaborators")

    __table_args__ = (
        Index('ix_inspection_collaborators_user_id', 'user_id'),
    )


class ActionItem(Base, TimestampMixin):
    __tablename__ = "action_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    inspection_id = Column(Integer, ForeignKey("inspections.id"), nullable=False)
    title = Column(String(255), nullable=False)
    status = Column(String(20), default="pending", nullable=False)

    inspection = relationship("Inspection", back_populates="action_items")


class ChecklistTemplate(Base, TimestampMixin):
    __tablename__ = "checklist_templates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=True)
    created_by_user_id = Column(String(255), ForeignKey("users.id"), nullable=True)
    is_public = Column(Boolean, default=False, nullable=False)
