"""
Read-only views of inspection-side rows returned by scoped listings
"""
from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime


class InspectionSummary(BaseModel):
    id: int
    title: str
    status: str
    organization_id: Optional[int] = None
    created_by: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ActionItemSummary(BaseModel):
    id: int
    inspection_id: int
    title: str
    status: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ChecklistTemplateSummary(BaseModel):
    id: int
    name: str
    organization_id: Optional[int] = None
    created_by_user_id: Optional[str] = None
    is_public: bool

    model_config = ConfigDict(from_attributes=True)
