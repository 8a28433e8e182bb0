"""
Invitation workflow API routes
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List
from app.database import get_async_session
from app.schemas import (
    InvitationResponse, InvitationDetails, InvitationAccepted, MessageResponse, Identity
)
from app.roles import Capability
from app.services.invitation_service import InvitationService
from app.dependencies import get_current_identity, require_capability
from app.models import User
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invitations", tags=["Invitations"])


@router.get("", response_model=List[InvitationResponse])
async def list_pending_invitations(
    organization_id: Optional[int] = Query(None, description="Restrict to one managed organization"),
    current_user: User = Depends(require_capability(Capability.INVITE_USERS)),
    db: AsyncSession = Depends(get_async_session)
):
    """List pending invitations in the caller's managed scope"""
    invitation_service = InvitationService(db)
    return await invitation_service.list_pending_invitations(current_user, organization_id=organization_id)


@router.get("/{token}/details", response_model=InvitationDetails)
async def get_invitation_details(
    token: str,
    db: AsyncSession = Depends(get_async_session)
):
    """Public lookup of a pending invitation by token"""
    invitation_service = InvitationService(db)
    return await invitation_service.get_invitation_details(token)


@router.post("/{token}/accept", response_model=InvitationAccepted)
async def accept_invitation(
    token: str,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_async_session)
):
    """Accept an invitation addressed to the caller's email"""
    invitation_service = InvitationService(db)
    return await invitation_service.accept_invitation(identity, token)


@router.put("/{invitation_id}/revoke", response_model=MessageResponse)
async def revoke_invitation(
    invitation_id: int,
    current_user: User = Depends(require_capability(Capability.INVITE_USERS)),
    db: AsyncSession = Depends(get_async_session)
):
    """Revoke a pending invitation"""
    invitation_service = InvitationService(db)
    invitation = await invitation_service.revoke_invitation(current_user, invitation_id)
    return MessageResponse(message=f"Invitation for {invitation.email} revoked")
