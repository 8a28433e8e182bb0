"""
Organization hierarchy service layer
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, func
from sqlalchemy.orm import aliased
from typing import Optional, List
from app.models import Organization, User, Invitation, utcnow
from app.schemas import (
    OrganizationCreate, OrganizationUpdate, OrganizationSummary, OrganizationStats,
    OrganizationLevel, InvitationStatus
)
from app.roles import UserRole
from app.scoping import (
    Resource, actor_role, scoped_select, organization_in_scope, organization_in_management_scope
)
from app.services.activity_service import ActivityService
from app.exceptions import (
    NotFoundError, PermissionDeniedError, CapacityExceededError, ConflictError, ValidationError
)
import logging

logger = logging.getLogger(__name__)

# Fields any organization administrator may change
PROFILE_FIELDS = (
    "name", "type", "description", "logo_url", "contact_email", "contact_phone", "address",
    "registration_number", "legal_name", "trade_name", "primary_activity_code",
    "primary_activity_description", "legal_nature", "opening_date", "share_capital",
    "company_size", "registration_status", "employee_count", "annual_revenue", "website",
    "industry_sector", "industry_subsector", "safety_certifications", "last_audit_date",
    "risk_level", "safety_contact_name", "safety_contact_email", "safety_contact_phone",
    "incident_history", "compliance_notes",
)

# Subscription and capacity fields, system admins only
LIMIT_FIELDS = ("subscription_plan", "subscription_status", "max_users", "max_subsidiaries")

# Columns that cannot be cleared
REQUIRED_FIELDS = frozenset({"name", "type"}) | frozenset(LIMIT_FIELDS)


class OrganizationService:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.activity = ActivityService(db)

    async def create_organization(self, actor: User, org_data: OrganizationCreate) -> Organization:
        """Create an organization placed in the hierarchy according to the actor's role"""
        role = actor_role(actor)

        if role is UserRole.SYSTEM_ADMIN:
            parent_id = org_data.parent_organization_id
            if parent_id is not None:
                level = OrganizationLevel.SUBSIDIARY
            elif org_data.organization_level is OrganizationLevel.MASTER:
                level = OrganizationLevel.MASTER
            else:
                level = OrganizationLevel.COMPANY
        elif role is UserRole.ORG_ADMIN and actor.can_manage_users:
            if actor.managed_organization_id is None:
                raise PermissionDeniedError("Org admin is not assigned to a managed organization")
            # Whatever parent was supplied, an org admin only creates under their own root
            parent_id = actor.managed_organization_id
            level = OrganizationLevel.SUBSIDIARY
        else:
            raise PermissionDeniedError("Insufficient permissions to create organizations")

        if parent_id is not None:
            await self._check_subsidiary_capacity(parent_id)

        values = org_data.model_dump(
            exclude={"parent_organization_id", "organization_level"},
            mode="python"
        )
        values["type"] = org_data.type.value
        values["subscription_plan"] = org_data.subscription_plan.value
        if values.get("risk_level") is None:
            values.pop("risk_level", None)

        organization = Organization(
            **values,
            parent_organization_id=parent_id,
            organization_level=level.value,
            is_active=True
        )
        self.db.add(organization)
        await self.db.flush()

        self.activity.log(
            action_type="organization_created",
            description=f"Created organization: {organization.name}",
            user_id=actor.id,
            organization_id=organization.id,
            target_type="organization",
            target_id=organization.id,
            details={"parent_organization_id": parent_id, "organization_level": level.value}
        )

        await self.db.commit()
        await self.db.refresh(organization)

        logger.info(f"Organization created: {organization.name} ({organization.id}) by {actor.id}")
        return organization

    async def _check_subsidiary_capacity(self, parent_id: int) -> Organization:
        """Lock the parent row and make sure one more subsidiary fits under it"""
        stmt = select(Organization).where(Organization.id == parent_id).with_for_update()
        result = await self.db.execute(stmt)
        parent = result.scalar_one_or_none()

        if not parent or not parent.is_active:
            raise NotFoundError("Parent organization not found")

        if parent.organization_level == OrganizationLevel.SUBSIDIARY.value or parent.parent_organization_id is not None:
            raise ValidationError("Subsidiaries cannot have subsidiaries of their own")

        count_stmt = select(func.count()).select_from(Organization).where(
            and_(Organization.parent_organization_id == parent_id, Organization.is_active == True)
        )
        subsidiary_count = (await self.db.execute(count_stmt)).scalar()

        if subsidiary_count >= parent.max_subsidiaries:
            logger.warning(f"Subsidiary limit reached for organization {parent_id}: {subsidiary_count}/{parent.max_subsidiaries}")
            raise CapacityExceededError(
                "Maximum number of subsidiaries reached for the parent organization",
                details={"max_subsidiaries": parent.max_subsidiaries, "subsidiary_count": subsidiary_count}
            )
        return parent

    async def update_organization(
        self,
        actor: User,
        org_id: int,
        org_data: OrganizationUpdate
    ) -> Organization:
        """Patch the allow-listed fields of an organization the actor administers"""
        role = actor_role(actor)
        if role not in (UserRole.SYSTEM_ADMIN, UserRole.ORG_ADMIN):
            raise PermissionDeniedError("Insufficient permissions to update this organization")

        organization = await organization_in_management_scope(self.db, actor, org_id)
        if not organization:
            if role is UserRole.SYSTEM_ADMIN:
                raise NotFoundError("Organization not found")
            raise PermissionDeniedError("Insufficient permissions to update this organization")

        allowed = PROFILE_FIELDS + LIMIT_FIELDS if role is UserRole.SYSTEM_ADMIN else PROFILE_FIELDS
        patch = org_data.model_dump(exclude_unset=True, mode="python")

        cleared = sorted(field for field in allowed if field in REQUIRED_FIELDS and field in patch and patch[field] is None)
        if cleared:
            raise ValidationError(f"Fields cannot be null: {', '.join(cleared)}", details={"fields": cleared})

        changes = {}
        for field in allowed:
            if field not in patch:
                continue
            value = patch[field]
            if hasattr(value, "value"):
                value = value.value
            current = getattr(organization, field)
            if value != current:
                changes[field] = {"from": current, "to": value}
                setattr(organization, field, value)

        if changes:
            self.activity.log(
                action_type="organization_updated",
                description=f"Updated organization: {organization.name}",
                user_id=actor.id,
                organization_id=organization.id,
                target_type="organization",
                target_id=organization.id,
                details={"changes": changes}
            )
            await self.db.commit()
            await self.db.refresh(organization)

            logger.info(f"Organization updated: {organization.name} ({', '.join(changes)})")

        return organization

    async def set_organization_active(self, actor: User, org_id: int, is_active: bool) -> Organization:
        """Soft-delete or reactivate an organization (system admin only)"""
        if actor_role(actor) is not UserRole.SYSTEM_ADMIN:
            raise PermissionDeniedError("Only system administrators can change organization status")

        organization = await self.get_organization_by_id(org_id)
        if not organization:
            raise NotFoundError("Organization not found")

        if organization.is_active == is_active:
            return organization

        if not is_active:
            active_users = (await self.db.execute(
                select(func.count()).select_from(User).where(
                    and_(User.organization_id == org_id, User.is_active == True)
                )
            )).scalar()
            active_subsidiaries = (await self.db.execute(
                select(func.count()).select_from(Organization).where(
                    and_(Organization.parent_organization_id == org_id, Organization.is_active == True)
                )
            )).scalar()
            if active_users or active_subsidiaries:
                raise ConflictError(
                    f"Cannot deactivate organization with {active_users} active users "
                    f"and {active_subsidiaries} active subsidiaries"
                )
        elif organization.parent_organization_id is not None:
            await self._check_subsidiary_capacity(organization.parent_organization_id)

        organization.is_active = is_active
        action = "organization_reactivated" if is_active else "organization_deactivated"
        self.activity.log(
            action_type=action,
            description=f"{'Reactivated' if is_active else 'Deactivated'} organization: {organization.name}",
            user_id=actor.id,
            organization_id=organization.id,
            target_type="organization",
            target_id=organization.id
        )
        await self.db.commit()
        await self.db.refresh(organization)

        logger.info(f"Organization {action.split('_')[1]}: {organization.name}")
        return organization

    async def get_organization_by_id(self, org_id: int) -> Optional[Organization]:
        """Get organization by ID, no scoping"""
        stmt = select(Organization).where(Organization.id == org_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_organization(self, actor: User, org_id: int) -> Organization:
        """Get an organization visible to the actor"""
        organization = await organization_in_scope(self.db, actor, org_id)
        if not organization:
            raise NotFoundError("Organization not found")
        return organization

    async def list_organizations_in_scope(
        self,
        actor: User,
        organization_id: Optional[int] = None,
        search: Optional[str] = None,
        page: int = 1,
        size: int = 100
    ) -> List[OrganizationSummary]:
        """List organizations in the actor's scope with hierarchy counters"""
        parent = aliased(Organization)
        user_count = (
            select(func.count(User.id))
            .where(and_(User.organization_id == Organization.id, User.is_active == True))
            .correlate(Organization)
            .scalar_subquery()
        )
        child = aliased(Organization)
        subsidiary_count = (
            select(func.count(child.id))
            .where(and_(child.parent_organization_id == Organization.id, child.is_active == True))
            .correlate(Organization)
            .scalar_subquery()
        )

        stmt = select(
            Organization,
            user_count.label("user_count"),
            subsidiary_count.label("subsidiary_count"),
            parent.name.label("parent_organization_name"),
        ).outerjoin(parent, Organization.parent_organization_id == parent.id)
        stmt = scoped_select(actor, Resource.ORGANIZATIONS, organization_id=organization_id, stmt=stmt)

        if search:
            search_pattern = f"%{search}%"
            stmt = stmt.where(
                Organization.name.ilike(search_pattern) |
                Organization.trade_name.ilike(search_pattern) |
                Organization.registration_number.ilike(search_pattern)
            )

        offset = (page - 1) * size
        stmt = stmt.order_by(Organization.organization_level, Organization.name).offset(offset).limit(size)

        result = await self.db.execute(stmt)

        organizations = []
        for org, users, subsidiaries, parent_name in result.all():
            summary = OrganizationSummary.model_validate(org)
            summary.user_count = users or 0
            summary.subsidiary_count = subsidiaries or 0
            summary.parent_organization_name = parent_name
            organizations.append(summary)
        return organizations

    async def get_organization_stats(self, actor: User, org_id: int) -> OrganizationStats:
        """Get usage statistics for an organization visible to the actor"""
        organization = await self.get_organization(actor, org_id)

        active_users = (await self.db.execute(
            select(func.count()).select_from(User).where(
                and_(User.organization_id == org_id, User.is_active == True)
            )
        )).scalar()

        total_users = (await self.db.execute(
            select(func.count()).select_from(User).where(User.organization_id == org_id)
        )).scalar()

        active_subsidiaries = (await self.db.execute(
            select(func.count()).select_from(Organization).where(
                and_(Organization.parent_organization_id == org_id, Organization.is_active == True)
            )
        )).scalar()

        pending_invitations = (await self.db.execute(
            select(func.count()).select_from(Invitation).where(
                and_(
                    Invitation.organization_id == org_id,
                    Invitation.status == InvitationStatus.PENDING.value,
                    Invitation.expires_at > utcnow()
                )
            )
        )).scalar()

        return OrganizationStats(
            organization_id=organization.id,
            name=organization.name,
            is_active=organization.is_active,
            active_users=active_users,
            total_users=total_users,
            max_users=organization.max_users,
            active_subsidiaries=active_subsidiaries,
            max_subsidiaries=organization.max_subsidiaries,
            pending_invitations=pending_invitations,
            user_capacity_percentage=round((active_users / organization.max_users) * 100, 2) if organization.max_users > 0 else 0,
            subsidiary_capacity_percentage=round((active_subsidiaries / organization.max_subsidiaries) * 100, 2) if organization.max_subsidiaries > 0 else 0
        )
