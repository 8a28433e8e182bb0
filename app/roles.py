"""
Role taxonomy and the fixed capability set each role implies.

Roles are a closed set. There is no numeric rank between them: every
comparison below is an explicit case, and an unknown role string parses to
``None``, which has no capabilities at all.
"""
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple


class UserRole(str, Enum):
    SYSTEM_ADMIN = "system_admin"
    ORG_ADMIN = "org_admin"
    MANAGER = "manager"
    INSPECTOR = "inspector"
    CLIENT = "client"

    @classmethod
    def parse(cls, value) -> Optional["UserRole"]:
        """Return the role for ``value`` or None when it is not a known role"""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


class Capability(str, Enum):
    MANAGE_ALL_ORGANIZATIONS = "manage_all_organizations"
    CREATE_SUBSIDIARIES = "create_subsidiaries"
    UPDATE_ORGANIZATIONS = "update_organizations"
    INVITE_USERS = "invite_users"
    MANAGE_USERS = "manage_users"
    VIEW_USERS = "view_users"
    DEACTIVATE_USERS = "deactivate_users"
    GRANT_PERMISSIONS = "grant_permissions"
    VIEW_ACTIVITY = "view_activity"
    VIEW_INSPECTIONS = "view_inspections"
    CREATE_INSPECTIONS = "create_inspections"
    MANAGE_ACTION_ITEMS = "manage_action_items"


_FIELD_ROLE_CAPABILITIES = frozenset({
    Capability.VIEW_ACTIVITY,
    Capability.VIEW_INSPECTIONS,
    Capability.CREATE_INSPECTIONS,
    Capability.MANAGE_ACTION_ITEMS,
})

ROLE_CAPABILITIES: Dict[UserRole, FrozenSet[Capability]] = {
    UserRole.SYSTEM_ADMIN: frozenset(Capability),
    UserRole.ORG_ADMIN: _FIELD_ROLE_CAPABILITIES | {
        Capability.CREATE_SUBSIDIARIES,
        Capability.UPDATE_ORGANIZATIONS,
        Capability.INVITE_USERS,
        Capability.MANAGE_USERS,
        Capability.VIEW_USERS,
        Capability.GRANT_PERMISSIONS,
    },
    UserRole.MANAGER: _FIELD_ROLE_CAPABILITIES,
    UserRole.INSPECTOR: _FIELD_ROLE_CAPABILITIES,
    UserRole.CLIENT: frozenset({
        Capability.VIEW_ACTIVITY,
        Capability.VIEW_INSPECTIONS,
    }),
}

# Roles an org admin may hand out through invitations or user updates
ORG_ADMIN_ASSIGNABLE_ROLES = frozenset({
    UserRole.MANAGER,
    UserRole.INSPECTOR,
    UserRole.CLIENT,
})


def capabilities_for(role) -> FrozenSet[Capability]:
    parsed = UserRole.parse(role)
    if parsed is None:
        return frozenset()
    return ROLE_CAPABILITIES[parsed]


def has_capability(role, capability: Capability) -> bool:
    return capability in capabilities_for(role)


def is_system_admin(role) -> bool:
    return UserRole.parse(role) is UserRole.SYSTEM_ADMIN


def is_admin_role(role) -> bool:
    """True for the two roles that see their whole scope regardless of ownership"""
    return UserRole.parse(role) in (UserRole.SYSTEM_ADMIN, UserRole.ORG_ADMIN)


def can_assign_role(actor_role, target_role) -> bool:
    """Whether an actor holding ``actor_role`` may give someone ``target_role``"""
    actor = UserRole.parse(actor_role)
    target = UserRole.parse(target_role)
    if actor is None or target is None:
        return False
    if actor is UserRole.SYSTEM_ADMIN:
        return True
    if actor is UserRole.ORG_ADMIN:
        return target in ORG_ADMIN_ASSIGNABLE_ROLES
    return False


def management_flags(role) -> Tuple[bool, bool]:
    """(can_manage_users, can_create_organizations) implied by a role"""
    parsed = UserRole.parse(role)
    if parsed in (UserRole.SYSTEM_ADMIN, UserRole.ORG_ADMIN):
        return True, True
    return False, False
