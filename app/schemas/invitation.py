"""
Invitation schemas
"""
from pydantic import BaseModel, EmailStr, ConfigDict
from typing import Optional
from datetime import datetime
from app.roles import UserRole


class InvitationCreate(BaseModel):
    email: EmailStr
    role: UserRole


class InvitationCreated(BaseModel):
    id: int
    invitation_token: str
    invitation_url: str
    expires_at: datetime
    message: str = "User invitation created successfully."


class InvitationResponse(BaseModel):
    id: int
    email: str
    organization_id: int
    organization_name: Optional[str] = None
    role: str
    invited_by: Optional[str] = None
    inviter_name: Optional[str] = None
    status: str
    expires_at: datetime
    accepted_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InvitationDetails(BaseModel):
    """Public view of a pending invitation"""
    email: str
    role: str
    organization_id: int
    organization_name: Optional[str] = None
    inviter_name: Optional[str] = None
    expires_at: datetime


class InvitationAccepted(BaseModel):
    role: str
    organization_id: int
    message: str = "Invitation accepted successfully"
