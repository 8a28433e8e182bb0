"""
Authorization scoping engine.

Every read or write of an organization-owned table is restricted through the
predicates built here. The rule, for a given actor:

- system_admin: unrestricted
- org_admin with a managed organization: that organization and its direct
  subsidiaries
- anyone else with a home organization: that organization only
- otherwise: nothing

An explicit ``organization_id`` requested by the caller narrows that scope
to one organization; it never widens it. Inactive actors and unknown roles
always get the empty scope.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple

from sqlalchemy import Select, and_, false, or_, select, true
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from app.models import (
    ActionItem, ActivityLog, ChecklistTemplate, Inspection, InspectionCollaborator,
    Invitation, Organization, User
)
from app.roles import UserRole, is_admin_role


class Resource(str, Enum):
    ORGANIZATIONS = "organizations"
    USERS = "users"
    INSPECTIONS = "inspections"
    ACTION_ITEMS = "action_items"
    ACTIVITY_LOG = "activity_log"
    INVITATIONS = "invitations"


@dataclass(frozen=True)
class ScopedResource:
    """How a resource class reaches its owning organization"""
    entity: Any
    organization_column: Any
    join: Optional[Tuple[Any, Any]] = None
    owned: bool = False
    active_column: Any = None


RESOURCES = {
    Resource.ORGANIZATIONS: ScopedResource(
        entity=Organization,
        organization_column=Organization.id,
        active_column=Organization.is_active,
    ),
    Resource.USERS: ScopedResource(
        entity=User,
        organization_column=User.organization_id,
    ),
    Resource.INSPECTIONS: ScopedResource(
        entity=Inspection,
        organization_column=Inspection.organization_id,
        owned=True,
    ),
    Resource.ACTION_ITEMS: ScopedResource(
        entity=ActionItem,
        organization_column=Inspection.organization_id,
        join=(Inspection, ActionItem.inspection_id == Inspection.id),
        owned=True,
    ),
    Resource.ACTIVITY_LOG: ScopedResource(
        entity=ActivityLog,
        organization_column=ActivityLog.organization_id,
    ),
    Resource.INVITATIONS: ScopedResource(
        entity=Invitation,
        organization_column=Invitation.organization_id,
    ),
}


def actor_role(actor: Optional[User]) -> Optional[UserRole]:
    """Role of an active actor, None for anything that must fail closed"""
    if actor is None or not actor.is_active:
        return None
    return UserRole.parse(actor.role)


def subtree_predicate(column, root_id: int) -> ColumnElement[bool]:
    """``column`` is the root organization or one of its direct subsidiaries"""
    # Never correlated: the outer query often selects from organizations itself
    children = (
        select(Organization.id)
        .where(Organization.parent_organization_id == root_id)
        .correlate(None)
    )
    return or_(column == root_id, column.in_(children))


def organization_predicate(
    actor: Optional[User],
    column,
    organization_id: Optional[int] = None
) -> ColumnElement[bool]:
    """Restrict ``column`` (an organization id column) to the actor's read scope"""
    role = actor_role(actor)

    if role is UserRole.SYSTEM_ADMIN:
        base = true()
    elif role is UserRole.ORG_ADMIN and actor.managed_organization_id is not None:
        base = subtree_predicate(column, actor.managed_organization_id)
    elif role is not None and actor.organization_id is not None:
        base = column == actor.organization_id
    else:
        return false()

    if organization_id is not None:
        return and_(column == organization_id, base)
    return base


def management_predicate(actor: Optional[User], column) -> ColumnElement[bool]:
    """Restrict ``column`` to organizations the actor may administer"""
    role = actor_role(actor)

    if role is UserRole.SYSTEM_ADMIN:
        return true()
    if role is UserRole.ORG_ADMIN and actor.managed_organization_id is not None:
        return subtree_predicate(column, actor.managed_organization_id)
    return false()


def ownership_predicate(actor: Optional[User]) -> Optional[ColumnElement[bool]]:
    """Personal-ownership filter on inspections, None for admin roles"""
    role = actor_role(actor)
    if role is None:
        return false()
    if is_admin_role(role):
        return None

    collaborations = select(InspectionCollaborator.inspection_id).where(
        InspectionCollaborator.user_id == actor.id,
        InspectionCollaborator.status == "active",
    )
    return or_(Inspection.created_by == actor.id, Inspection.id.in_(collaborations))


def scoped_select(
    actor: Optional[User],
    resource: Resource,
    organization_id: Optional[int] = None,
    stmt: Optional[Select] = None
) -> Select:
    """
    Build (or narrow) a SELECT over ``resource`` restricted to the actor's scope.

    ``stmt`` lets callers pass a statement with their own columns or
    aggregates; it must already select from the resource's entity.
    """
    target = RESOURCES[resource]
    if stmt is None:
        stmt = select(target.entity)
    if target.join is not None:
        stmt = stmt.join(*target.join)

    stmt = stmt.where(organization_predicate(actor, target.organization_column, organization_id))

    if target.active_column is not None and actor_role(actor) is not UserRole.SYSTEM_ADMIN:
        stmt = stmt.where(target.active_column.is_(True))

    if target.owned:
        owned = ownership_predicate(actor)
        if owned is not None:
            stmt = stmt.where(owned)

    return stmt


def template_visibility_predicate(actor: Optional[User]) -> ColumnElement[bool]:
    """Checklist templates: public, same organization or own; all for system_admin"""
    role = actor_role(actor)
    if role is UserRole.SYSTEM_ADMIN:
        return true()
    if role is None:
        return ChecklistTemplate.is_public.is_(True)

    clauses = [
        ChecklistTemplate.is_public.is_(True),
        ChecklistTemplate.created_by_user_id == actor.id,
    ]
    if actor.organization_id is not None:
        clauses.append(ChecklistTemplate.organization_id == actor.organization_id)
    return or_(*clauses)


async def organization_in_scope(db: AsyncSession, actor: Optional[User], organization_id: int) -> Optional[Organization]:
    """Load an organization only if it falls in the actor's read scope"""
    stmt = scoped_select(actor, Resource.ORGANIZATIONS, organization_id=organization_id)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def organization_in_management_scope(
    db: AsyncSession,
    actor: Optional[User],
    organization_id: Optional[int]
) -> Optional[Organization]:
    """Load an organization only if the actor may administer it"""
    if organization_id is None:
        return None
    stmt = select(Organization).where(
        Organization.id == organization_id,
        management_predicate(actor, Organization.id),
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()
