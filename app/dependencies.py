"""
Authentication and authorization dependencies for FastAPI
"""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from app.database import get_async_session
from app.models import User
from app.schemas import Identity
from app.roles import UserRole, Capability, has_capability
from app.scoping import actor_role
from app.security import verify_token
from app.services.user_service import UserService
import logging

logger = logging.getLogger(__name__)

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Identity:
    """Identity asserted by the bearer token"""

    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication credentials required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    identity = verify_token(credentials.credentials)
    if not identity:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return identity


async def get_current_user(
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_async_session)
) -> User:
    """Get the profile of the authenticated identity, provisioning it on first use"""
    user_service = UserService(db)

    user = await user_service.get_user_by_id(identity.id)
    if not user:
        user = (await user_service.get_or_provision_user(identity)).user

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )

    return user


async def get_current_admin(
    current_user: User = Depends(get_current_user)
) -> User:
    """Get current user if they are a system admin or an org admin with a managed organization"""
    role = actor_role(current_user)
    if role is UserRole.SYSTEM_ADMIN:
        return current_user
    if role is UserRole.ORG_ADMIN and current_user.managed_organization_id is not None:
        return current_user

    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Administrator access required"
    )


async def get_current_system_admin(
    current_user: User = Depends(get_current_user)
) -> User:
    """Get current user if they are a system admin"""
    if actor_role(current_user) is not UserRole.SYSTEM_ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="System admin access required"
        )
    return current_user


def require_capability(*required: Capability):
    """Dependency factory for capability-based access control"""

    async def capability_checker(
        current_user: User = Depends(get_current_user)
    ) -> User:
        role = actor_role(current_user)
        missing = [capability.value for capability in required if not has_capability(role, capability)]
        if missing:
            logger.warning(f"User {current_user.id} missing capabilities: {', '.join(missing)}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing required capabilities: {', '.join(missing)}"
            )
        return current_user

    return capability_checker

