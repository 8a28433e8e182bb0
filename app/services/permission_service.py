"""
Organization-level permission grants
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_
from typing import List
from app.models import OrganizationPermission, User, utcnow
from app.schemas import OrganizationPermissionCreate
from app.roles import UserRole, Capability, has_capability
from app.scoping import actor_role, organization_predicate, organization_in_management_scope
from app.services.activity_service import ActivityService
from app.exceptions import NotFoundError, PermissionDeniedError, ConflictError
import logging

logger = logging.getLogger(__name__)


class PermissionService:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.activity = ActivityService(db)

    async def _check_grantor(self, actor: User, organization_id: int) -> None:
        role = actor_role(actor)
        if not has_capability(role, Capability.GRANT_PERMISSIONS):
            raise PermissionDeniedError("Insufficient permissions to manage organization permissions")

        if not await organization_in_management_scope(self.db, actor, organization_id):
            if role is UserRole.SYSTEM_ADMIN:
                raise NotFoundError("Organization not found")
            raise PermissionDeniedError("Organization is outside your scope")

    async def grant_permission(
        self,
        actor: User,
        user_id: str,
        permission_data: OrganizationPermissionCreate
    ) -> OrganizationPermission:
        """Grant a user a permission on an organization the actor manages"""
        organization_id = permission_data.organization_id
        permission_type = permission_data.permission_type.value

        await self._check_grantor(actor, organization_id)

        target = await self.db.get(User, user_id)
        if not target:
            raise NotFoundError("User not found")

        stmt = select(OrganizationPermission).where(
            and_(
                OrganizationPermission.user_id == user_id,
                OrganizationPermission.organization_id == organization_id,
                OrganizationPermission.permission_type == permission_type
            )
        )
        permission = (await self.db.execute(stmt)).scalar_one_or_none()

        if permission and permission.is_active:
            raise ConflictError("User already has this permission")

        if permission:
            permission.is_active = True
            permission.granted_by = actor.id
            permission.granted_at = utcnow()
        else:
            permission = OrganizationPermission(
                user_id=user_id,
                organization_id=organization_id,
                permission_type=permission_type,
                granted_by=actor.id,
                granted_at=utcnow(),
                is_active=True
            )
            self.db.add(permission)
        await self.db.flush()

        self.activity.log(
            action_type="permission_granted",
            description=f"Granted {permission_type} on organization {organization_id} to {target.email}",
            user_id=actor.id,
            organization_id=organization_id,
            target_type="user",
            target_id=user_id,
            details={"permission_id": permission.id, "permission_type": permission_type}
        )
        await self.db.commit()
        await self.db.refresh(permission)

        logger.info(f"Permission {permission_type} on {organization_id} granted to {user_id} by {actor.id}")
        return permission

    async def revoke_permission(self, actor: User, permission_id: int) -> OrganizationPermission:
        """Deactivate a permission grant on an organization the actor manages"""
        permission = await self.db.get(OrganizationPermission, permission_id)
        if not permission or not permission.is_active:
            raise NotFoundError("Permission not found")

        await self._check_grantor(actor, permission.organization_id)

        permission.is_active = False
        self.activity.log(
            action_type="permission_revoked",
            description=f"Revoked {permission.permission_type} on organization {permission.organization_id}",
            user_id=actor.id,
            organization_id=permission.organization_id,
            target_type="user",
            target_id=permission.user_id,
            details={"permission_id": permission.id}
        )
        await self.db.commit()
        await self.db.refresh(permission)

        logger.info(f"Permission {permission_id} revoked by {actor.id}")
        return permission

    async def list_user_permissions(self, actor: User, user_id: str) -> List[OrganizationPermission]:
        """Active grants of a user; others' grants only within the actor's scope"""
        role = actor_role(actor)
        stmt = select(OrganizationPermission).where(
            and_(OrganizationPermission.user_id == user_id, OrganizationPermission.is_active == True)
        )

        if role is None or actor.id != user_id:
            if not has_capability(role, Capability.VIEW_USERS):
                raise PermissionDeniedError("Insufficient permissions to view users")
            stmt = stmt.where(organization_predicate(actor, OrganizationPermission.organization_id))

        result = await self.db.execute(stmt.order_by(OrganizationPermission.id))
        return list(result.scalars().all())
