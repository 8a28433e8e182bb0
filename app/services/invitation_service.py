"""
Invitation workflow service layer
"""
from datetime import timedelta
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, and_, func, desc
from sqlalchemy.orm import aliased
from typing import Optional, List
from app.config import settings
from app.models import Invitation, Organization, User, utcnow
from app.schemas import (
    InvitationCreate, InvitationCreated, InvitationDetails, InvitationAccepted,
    InvitationResponse, InvitationStatus, Identity
)
from app.roles import UserRole, Capability, has_capability, can_assign_role
from app.scoping import actor_role, management_predicate, organization_in_management_scope
from app.security import generate_token
from app.services.activity_service import ActivityService
from app.services.user_service import UserService, apply_role, is_system_creator
from app.exceptions import (
    NotFoundError, PermissionDeniedError, ConflictError, CapacityExceededError
)
import logging

logger = logging.getLogger(__name__)


def pending_criteria():
    """Pending and not yet expired; expiry is evaluated at read time"""
    return and_(
        Invitation.status == InvitationStatus.PENDING.value,
        Invitation.expires_at > utcnow()
    )


class InvitationService:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.activity = ActivityService(db)

    async def _managed_organization(self, actor: User, organization_id: int) -> Organization:
        """Organization the actor may invite into, or the matching error"""
        role = actor_role(actor)
        if not has_capability(role, Capability.INVITE_USERS):
            raise PermissionDeniedError("Insufficient permissions to manage invitations")

        organization = await organization_in_management_scope(self.db, actor, organization_id)
        if not organization:
            if role is UserRole.SYSTEM_ADMIN:
                raise NotFoundError("Organization not found")
            raise PermissionDeniedError("Organization is outside your scope")
        return organization

    async def create_invitation(
        self,
        actor: User,
        organization_id: int,
        invitation_data: InvitationCreate
    ) -> InvitationCreated:
        """Issue an invitation token binding an email to an organization and role"""
        role = actor_role(actor)
        if not can_assign_role(role, invitation_data.role):
            logger.warning(f"User {actor.id} attempted to invite with role {invitation_data.role.value}")
            raise PermissionDeniedError(f"Cannot invite users with role {invitation_data.role.value}")

        organization = await self._managed_organization(actor, organization_id)
        if not organization.is_active:
            raise NotFoundError("Organization not found")

        email = str(invitation_data.email)

        existing_user = await self.db.execute(select(User.id).where(User.email == email))
        if existing_user.scalar_one_or_none():
            raise ConflictError("A user with this email already exists")

        existing_invitation = await self.db.execute(
            select(Invitation.id).where(
                and_(
                    Invitation.email == email,
                    Invitation.organization_id == organization_id,
                    pending_criteria()
                )
            )
        )
        if existing_invitation.first():
            raise ConflictError("An active invitation already exists for this email")

        active_users = (await self.db.execute(
            select(func.count()).select_from(User).where(
                and_(User.organization_id == organization_id, User.is_active == True)
            )
        )).scalar()
        if active_users >= organization.max_users:
            logger.warning(f"User limit reached for organization {organization_id}: {active_users}/{organization.max_users}")
            raise CapacityExceededError(
                f"Organization has reached maximum user limit of {organization.max_users}",
                details={"max_users": organization.max_users, "active_users": active_users}
            )

        invitation = Invitation(
            email=email,
            organization_id=organization_id,
            role=invitation_data.role.value,
            invited_by=actor.id,
            invitation_token=generate_token(),
            status=InvitationStatus.PENDING.value,
            expires_at=utcnow() + timedelta(days=settings.invitation_expire_days)
        )
        self.db.add(invitation)
        await self.db.flush()

        self.activity.log(
            action_type="user_invited",
            description=f"Invited {email} to {organization.name} as {invitation.role}",
            user_id=actor.id,
            organization_id=organization_id,
            target_type="invitation",
            target_id=invitation.id,
            details={"email": email, "role": invitation.role}
        )
        await self.db.commit()
        await self.db.refresh(invitation)

        logger.info(f"Invitation created for {email} to organization {organization_id} by {actor.id}")

        return InvitationCreated(
            id=invitation.id,
            invitation_token=invitation.invitation_token,
            invitation_url=f"{settings.frontend_url.rstrip('/')}/accept-invitation/{invitation.invitation_token}",
            expires_at=invitation.expires_at
        )

    async def _pending_by_token(self, token: str) -> Optional[Invitation]:
        stmt = select(Invitation).where(and_(Invitation.invitation_token == token, pending_criteria()))
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_invitation_details(self, token: str) -> InvitationDetails:
        """Public view of a pending invitation; anything else is not found"""
        inviter = aliased(User)
        stmt = (
            select(Invitation, Organization.name, inviter.name)
            .join(Organization, Invitation.organization_id == Organization.id)
            .outerjoin(inviter, Invitation.invited_by == inviter.id)
            .where(and_(Invitation.invitation_token == token, pending_criteria()))
        )
        row = (await self.db.execute(stmt)).first()
        if not row:
            raise NotFoundError("Invitation not found or expired")

        invitation, organization_name, inviter_name = row
        return InvitationDetails(
            email=invitation.email,
            role=invitation.role,
            organization_id=invitation.organization_id,
            organization_name=organization_name,
            inviter_name=inviter_name,
            expires_at=invitation.expires_at
        )

    async def accept_invitation(self, identity: Identity, token: str) -> InvitationAccepted:
        """Claim an invitation for the authenticated identity and provision its profile"""
        invitation = await self._pending_by_token(token)
        if not invitation:
            raise NotFoundError("Invitation not found or expired")

        if identity.email != invitation.email:
            logger.warning(f"Identity {identity.id} tried to accept invitation {invitation.id} addressed to another email")
            raise PermissionDeniedError("This invitation was issued to a different email address")

        # insert_profile may roll the session back, which expires the loaded invitation
        invitation_id = invitation.id
        organization_id = invitation.organization_id
        invited_role = invitation.role

        user_service = UserService(self.db)
        user = await user_service.get_user_by_id(identity.id)
        if user is None:
            user, _ = await user_service.insert_profile(identity)
        if not user.is_active:
            raise PermissionDeniedError("User account is inactive")

        if not await user_service.claim_invitation(invitation_id, user.id):
            await self.db.rollback()
            logger.warning(f"Invitation {invitation_id} was claimed concurrently")
            raise ConflictError("Invitation has already been accepted or revoked")

        role = UserRole(invited_role)
        if is_system_creator(user.email):
            role = UserRole.SYSTEM_ADMIN
        apply_role(user, role, organization_id)
        user.organization_id = organization_id
        user.last_login_at = utcnow()

        self.activity.log(
            action_type="invitation_accepted",
            description=f"Accepted invitation to organization {organization_id} as {invited_role}",
            user_id=user.id,
            organization_id=organization_id,
            target_type="invitation",
            target_id=invitation_id
        )
        await self.db.commit()

        logger.info(f"Invitation {invitation_id} accepted by {user.email}")

        return InvitationAccepted(role=user.role, organization_id=organization_id)

    async def revoke_invitation(self, actor: User, invitation_id: int) -> Invitation:
        """Revoke a pending invitation inside the actor's managed scope"""
        invitation = await self.db.get(Invitation, invitation_id)
        if not invitation:
            raise NotFoundError("Invitation not found")

        await self._managed_organization(actor, invitation.organization_id)

        stmt = (
            update(Invitation)
            .where(
                and_(
                    Invitation.id == invitation_id,
                    Invitation.status == InvitationStatus.PENDING.value
                )
            )
            .values(status=InvitationStatus.REVOKED.value, revoked_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount != 1:
            await self.db.rollback()
            raise ConflictError("Only pending invitations can be revoked")

        self.activity.log(
            action_type="invitation_revoked",
            description=f"Revoked invitation for {invitation.email}",
            user_id=actor.id,
            organization_id=invitation.organization_id,
            target_type="invitation",
            target_id=invitation.id
        )
        await self.db.commit()
        await self.db.refresh(invitation)

        logger.info(f"Invitation {invitation_id} revoked by {actor.id}")
        return invitation

    async def list_pending_invitations(
        self,
        actor: User,
        organization_id: Optional[int] = None
    ) -> List[InvitationResponse]:
        """Pending, unexpired invitations the actor manages, newest first"""
        if not has_capability(actor_role(actor), Capability.INVITE_USERS):
            raise PermissionDeniedError("Insufficient permissions to manage invitations")

        inviter = aliased(User)
        stmt = (
            select(Invitation, Organization.name, inviter.name)
            .join(Organization, Invitation.organization_id == Organization.id)
            .outerjoin(inviter, Invitation.invited_by == inviter.id)
            .where(pending_criteria())
            .where(management_predicate(actor, Invitation.organization_id))
        )
        if organization_id is not None:
            stmt = stmt.where(Invitation.organization_id == organization_id)

        stmt = stmt.order_by(desc(Invitation.created_at), desc(Invitation.id))
        result = await self.db.execute(stmt)

        invitations = []
        for invitation, organization_name, inviter_name in result.all():
            response = InvitationResponse.model_validate(invitation)
            response.organization_name = organization_name
            response.inviter_name = inviter_name
            invitations.append(response)
        return invitations
