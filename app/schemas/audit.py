"""
Activity log schemas
"""
from pydantic import BaseModel, ConfigDict
from typing import Optional, List
from datetime import datetime


class ActivityLogResponse(BaseModel):
    id: int
    user_id: Optional[str] = None
    organization_id: Optional[int] = None
    action_type: str
    action_description: str
    target_type: Optional[str] = None
    target_id: Optional[str] = None
    details: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ActivityLogList(BaseModel):
    activities: List[ActivityLogResponse]
    limit: int
    offset: int
