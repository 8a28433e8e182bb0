"""
User directory and provisioning service layer
"""
from dataclasses import dataclass, field
from datetime import timedelta
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select, update, and_, or_, func, desc
from typing import Optional, List, Tuple
from app.config import settings
from app.models import User, Organization, OrganizationPermission, Invitation, utcnow
from app.schemas import UserUpdate, UserStats, Identity, InvitationStatus
from app.roles import UserRole, Capability, has_capability, can_assign_role, management_flags
from app.scoping import (
    Resource, actor_role, scoped_select, organization_in_scope, organization_in_management_scope
)
from app.services.activity_service import ActivityService
from app.exceptions import NotFoundError, PermissionDeniedError, ConflictError, ValidationError
import logging

logger = logging.getLogger(__name__)


@dataclass
class ProvisionedUser:
    user: User
    organization: Optional[Organization] = None
    managed_organization: Optional[Organization] = None
    permissions: List[OrganizationPermission] = field(default_factory=list)


def is_system_creator(email: Optional[str]) -> bool:
    """True for the configured bootstrap administrator"""
    creator = settings.system_creator_email
    return bool(creator and email and email.lower() == creator.lower())


def apply_role(user: User, role: UserRole, organization_id: Optional[int] = None) -> None:
    """
    Set a role together with everything derived from it.

    Org admins manage ``organization_id``; every other role has no managed
    organization. Management flags follow the role.
    """
    can_manage, can_create = management_flags(role)
    user.role = role.value
    user.can_manage_users = can_manage
    user.can_create_organizations = can_create
    user.managed_organization_id = organization_id if role is UserRole.ORG_ADMIN else None


class UserService:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.activity = ActivityService(db)

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        """Get user by identity id, no scoping"""
        stmt = select(User).where(User.id == user_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_user_by_email(self, email: str) -> Optional[User]:
        stmt = select(User).where(User.email == email)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_provision_user(self, identity: Identity) -> ProvisionedUser:
        """
        Load the profile for an authenticated identity, creating it on first login.

        A new profile is taken from the most recent pending invitation for the
        identity's email when there is one. Otherwise the configured system
        creator and the very first user become system admins and everybody
        else starts as an inspector without an organization.
        """
        user = await self.get_user_by_id(identity.id)

        if user:
            if is_system_creator(identity.email) and user.role != UserRole.SYSTEM_ADMIN.value:
                apply_role(user, UserRole.SYSTEM_ADMIN)
                self.activity.log(
                    action_type="user_promoted",
                    description=f"Promoted system creator {user.email} to system admin",
                    user_id=user.id,
                    organization_id=user.organization_id,
                    target_type="user",
                    target_id=user.id
                )
                logger.warning(f"System creator {user.email} restored to system_admin")
            user.last_login_at = utcnow()
            await self.db.commit()
            await self.db.refresh(user)
        else:
            user = await self._provision(identity)

        return await self.load_context(user)

    async def _provision(self, identity: Identity) -> User:
        creator = is_system_creator(identity.email)
        invitation = None if creator else await self.latest_pending_invitation(identity.email)

        user, created = await self.insert_profile(identity)
        if not created:
            return user

        if invitation and await self.claim_invitation(invitation.id, user.id):
            apply_role(user, UserRole(invitation.role), invitation.organization_id)
            user.organization_id = invitation.organization_id
            self.activity.log(
                action_type="invitation_accepted",
                description=f"Accepted invitation to organization {invitation.organization_id} as {invitation.role}",
                user_id=user.id,
                organization_id=invitation.organization_id,
                target_type="invitation",
                target_id=invitation.id
            )
            source = "invitation"
        else:
            first_user = await self._is_first_user(user.id)
            role = UserRole.SYSTEM_ADMIN if (creator or first_user) else UserRole.INSPECTOR
            apply_role(user, role)
            source = "system creator" if creator else ("first user" if first_user else "default profile")

        self.activity.log(
            action_type="user_provisioned",
            description=f"Provisioned user {user.email} from {source}",
            user_id=user.id,
            organization_id=user.organization_id,
            target_type="user",
            target_id=user.id,
            details={"role": user.role}
        )
        await self.db.commit()
        await self.db.refresh(user)

        logger.info(f"User provisioned: {user.email} ({user.id}) as {user.role} from {source}")
        return user

    async def insert_profile(self, identity: Identity) -> Tuple[User, bool]:
        """
        Insert a bare profile row for ``identity`` and flush it.

        When the insert collides with a concurrent provisioning of the same
        identity the winner's row is re-read, updated with the login time and
        committed, and the second element of the result is False. A
        collision on the email of a different identity is a conflict.
        Either way the session is rolled back first, so objects the caller
        loaded earlier are expired.
        """
        user = User(
            id=identity.id,
            email=identity.email,
            name=identity.name or identity.email.split("@")[0],
            role=UserRole.INSPECTOR.value,
            is_active=True,
            last_login_at=utcnow()
        )
        self.db.add(user)
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            existing = await self.get_user_by_id(identity.id)
            if not existing:
                logger.warning(f"Email {identity.email} already belongs to another identity")
                raise ConflictError("A user with this email already exists")
            existing.last_login_at = utcnow()
            await self.db.commit()
            await self.db.refresh(existing)
            logger.info(f"User {identity.id} was provisioned concurrently, using existing row")
            return existing, False
        return user, True

    async def _is_first_user(self, user_id: str) -> bool:
        """True when no user other than ``user_id`` exists yet"""
        stmt = select(func.count()).select_from(User).where(User.id != user_id)
        return (await self.db.execute(stmt)).scalar() == 0

    async def latest_pending_invitation(self, email: str) -> Optional[Invitation]:
        """Most recent pending, unexpired invitation for an email"""
        stmt = (
            select(Invitation)
            .where(
                and_(
                    Invitation.email == email,
                    Invitation.status == InvitationStatus.PENDING.value,
                    Invitation.expires_at > utcnow()
                )
            )
            .order_by(desc(Invitation.created_at), desc(Invitation.id))
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def claim_invitation(self, invitation_id: int, user_id: str) -> bool:
        """Conditionally move a pending invitation to accepted; False if someone else got there first"""
        stmt = (
            update(Invitation)
            .where(
                and_(
                    Invitation.id == invitation_id,
                    Invitation.status == InvitationStatus.PENDING.value
                )
            )
            .values(
                status=InvitationStatus.ACCEPTED.value,
                accepted_at=utcnow(),
                accepted_by=user_id
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount == 1

    async def load_context(self, user: User) -> ProvisionedUser:
        """Attach home organization, managed organization and active grants"""
        organization = None
        if user.organization_id is not None:
            organization = await self.db.get(Organization, user.organization_id)

        managed_organization = None
        if user.managed_organization_id is not None:
            managed_organization = await self.db.get(Organization, user.managed_organization_id)

        stmt = select(OrganizationPermission).where(
            and_(OrganizationPermission.user_id == user.id, OrganizationPermission.is_active == True)
        ).order_by(OrganizationPermission.id)
        permissions = list((await self.db.execute(stmt)).scalars().all())

        return ProvisionedUser(
            user=user,
            organization=organization,
            managed_organization=managed_organization,
            permissions=permissions
        )

    async def _can_administer(self, actor: User, role: UserRole, target: User) -> bool:
        if role is UserRole.SYSTEM_ADMIN:
            return True
        if role is not UserRole.ORG_ADMIN or not actor.can_manage_users:
            return False
        # Org admins never manage other administrators, themselves included
        if UserRole.parse(target.role) not in (UserRole.MANAGER, UserRole.INSPECTOR, UserRole.CLIENT):
            return False
        if target.organization_id is None:
            return False
        return await organization_in_management_scope(self.db, actor, target.organization_id) is not None

    async def update_user(self, actor: User, target_user_id: str, user_data: UserUpdate) -> User:
        """Apply a self-service or administrative patch to a user"""
        role = actor_role(actor)
        if role is None:
            raise PermissionDeniedError("Insufficient permissions to update this user")

        is_self = actor.id == target_user_id
        target = actor if is_self else await self.get_user_by_id(target_user_id)
        if not target:
            if role is UserRole.SYSTEM_ADMIN:
                raise NotFoundError("User not found")
            raise PermissionDeniedError("Insufficient permissions to update this user")

        patch = user_data.model_dump(exclude_unset=True)
        admin_fields = {"role", "is_active", "managed_organization_id"}
        if not is_self:
            admin_fields.add("organization_id")

        if admin_fields & patch.keys() and not await self._can_administer(actor, role, target):
            logger.warning(f"User {actor.id} denied administrative update of {target_user_id}")
            raise PermissionDeniedError("Insufficient permissions to update this user")
        if not is_self and not admin_fields & patch.keys():
            raise PermissionDeniedError("Only the user can change their own profile")

        # Every check runs before the target is touched
        new_org_id = patch["organization_id"] if "organization_id" in patch else target.organization_id
        if "organization_id" in patch and new_org_id is not None:
            if role is UserRole.SYSTEM_ADMIN:
                if not await organization_in_scope(self.db, actor, new_org_id):
                    raise NotFoundError("Organization not found")
            elif is_self:
                if not await organization_in_scope(self.db, actor, new_org_id):
                    raise PermissionDeniedError("Organization is outside your scope")
            elif not await organization_in_management_scope(self.db, actor, new_org_id):
                raise PermissionDeniedError("Organization is outside your scope")

        new_role = patch.get("role")
        managed_id = patch.get("managed_organization_id")
        if new_role is not None:
            if not can_assign_role(role, new_role):
                logger.warning(f"User {actor.id} ({role.value}) attempted to assign role {new_role.value}")
                raise PermissionDeniedError(f"Cannot assign role {new_role.value}")
            if is_system_creator(target.email) and new_role is not UserRole.SYSTEM_ADMIN:
                raise PermissionDeniedError("The system creator's role cannot be changed")

            if new_role is UserRole.ORG_ADMIN:
                managed_id = managed_id or new_org_id
                if managed_id is None:
                    raise ValidationError("An org admin needs an organization to manage")
                if not await organization_in_scope(self.db, actor, managed_id):
                    raise NotFoundError("Organization not found")
            else:
                managed_id = None
        elif managed_id is not None:
            if UserRole.parse(target.role) is not UserRole.ORG_ADMIN:
                raise ValidationError("Only org admins have a managed organization")
            if not await organization_in_scope(self.db, actor, managed_id):
                raise NotFoundError("Organization not found")

        if is_self and patch.get("is_active") is False:
            raise PermissionDeniedError("You cannot deactivate yourself")

        changes = {}

        def record(field_name, value):
            current = getattr(target, field_name)
            if current != value:
                changes[field_name] = {"from": current, "to": value}
                setattr(target, field_name, value)

        if is_self:
            if patch.get("name") is not None:
                record("name", patch["name"])
            if "phone" in patch:
                record("phone", patch["phone"])

        if "organization_id" in patch:
            record("organization_id", new_org_id)

        if new_role is not None:
            before = (target.role, target.managed_organization_id)
            apply_role(target, new_role, managed_id)
            if before != (target.role, target.managed_organization_id):
                changes["role"] = {"from": before[0], "to": target.role}
                changes["managed_organization_id"] = {"from": before[1], "to": target.managed_organization_id}
        elif managed_id is not None:
            record("managed_organization_id", managed_id)

        if patch.get("is_active") is not None:
            record("is_active", patch["is_active"])

        if changes:
            self.activity.log(
                action_type="user_updated",
                description=f"Updated user: {target.email}",
                user_id=actor.id,
                organization_id=target.organization_id,
                target_type="user",
                target_id=target.id,
                details={"changes": changes}
            )
            await self.db.commit()
            await self.db.refresh(target)

            logger.info(f"User updated: {target.email} ({', '.join(changes)}) by {actor.id}")

        return target

    async def deactivate_user(self, actor: User, target_user_id: str) -> User:
        """Soft-delete a user (system admin only, never self)"""
        if actor_role(actor) is not UserRole.SYSTEM_ADMIN:
            raise PermissionDeniedError("Only system administrators can deactivate users")
        if actor.id == target_user_id:
            raise PermissionDeniedError("You cannot deactivate yourself")

        target = await self.get_user_by_id(target_user_id)
        if not target:
            raise NotFoundError("User not found")

        if target.is_active:
            target.is_active = False
            self.activity.log(
                action_type="user_deactivated",
                description=f"Deactivated user: {target.email}",
                user_id=actor.id,
                organization_id=target.organization_id,
                target_type="user",
                target_id=target.id
            )
            await self.db.commit()
            await self.db.refresh(target)

            logger.info(f"User deactivated: {target.email} by {actor.id}")

        return target

    async def get_user(self, actor: User, user_id: str) -> User:
        """Get a user visible to the actor"""
        if actor_role(actor) is not None and actor.id == user_id:
            return actor
        if not has_capability(actor_role(actor), Capability.VIEW_USERS):
            raise PermissionDeniedError("Insufficient permissions to view users")

        stmt = scoped_select(actor, Resource.USERS).where(User.id == user_id)
        result = await self.db.execute(stmt)
        user = result.scalar_one_or_none()
        if not user:
            raise NotFoundError("User not found")
        return user

    async def list_users_in_scope(
        self,
        actor: User,
        organization_id: Optional[int] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        page: int = 1,
        size: int = 20
    ) -> Tuple[List[User], int]:
        """List users in the actor's scope"""
        if not has_capability(actor_role(actor), Capability.VIEW_USERS):
            raise PermissionDeniedError("Insufficient permissions to view users")

        stmt = scoped_select(actor, Resource.USERS, organization_id=organization_id)

        if is_active is not None:
            stmt = stmt.where(User.is_active == is_active)

        if search:
            search_pattern = f"%{search}%"
            stmt = stmt.where(
                or_(
                    User.name.ilike(search_pattern),
                    User.email.ilike(search_pattern)
                )
            )

        count_stmt = select(func.count()).select_from(stmt.subquery())
        total = (await self.db.execute(count_stmt)).scalar()

        offset = (page - 1) * size
        stmt = stmt.order_by(User.name, User.id).offset(offset).limit(size)
        result = await self.db.execute(stmt)

        return list(result.scalars().all()), total

    async def get_user_stats(self, actor: User) -> UserStats:
        """User statistics for the actor's scope"""
        if not has_capability(actor_role(actor), Capability.VIEW_USERS):
            raise PermissionDeniedError("Insufficient permissions to view users")

        def scoped_count(*criteria):
            stmt = scoped_select(actor, Resource.USERS, stmt=select(func.count(User.id)))
            for criterion in criteria:
                stmt = stmt.where(criterion)
            return stmt

        total_users = (await self.db.execute(scoped_count())).scalar()
        active_users = (await self.db.execute(scoped_count(User.is_active == True))).scalar()
        recent_registrations = (await self.db.execute(
            scoped_count(User.created_at >= utcnow() - timedelta(days=30))
        )).scalar()
        users_with_organizations = (await self.db.execute(
            scoped_count(User.organization_id.isnot(None))
        )).scalar()

        role_stmt = scoped_select(
            actor, Resource.USERS, stmt=select(User.role, func.count(User.id))
        ).group_by(User.role)
        users_by_role = {row_role: count for row_role, count in (await self.db.execute(role_stmt)).all()}

        return UserStats(
            total_users=total_users,
            active_users=active_users,
            users_by_role=users_by_role,
            recent_registrations=recent_registrations,
            users_with_organizations=users_with_organizations
        )
