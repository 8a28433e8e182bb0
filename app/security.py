"""
Identity token handling and token generation.

Credentials are verified by the identity provider; this module only checks
the signed bearer token it issues and turns it into an ``Identity``.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
import secrets
from app.config import settings
from app.schemas import Identity


def generate_token(length: int = 32) -> str:
    """Generate a cryptographically secure random token"""
    return secrets.token_urlsafe(length)


def create_access_token(
    data: Dict[str, Any],
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create a signed identity token"""
    to_encode = data.copy()

    now = datetime.now(timezone.utc)
    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode.update({
        "exp": expire,
        "iat": now,
        "type": "access"
    })

    return jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.algorithm
    )


def create_identity_token(user_id: str, email: str, name: Optional[str] = None) -> str:
    """Token carrying the claims ``verify_token`` expects"""
    return create_access_token({"sub": user_id, "email": email, "name": name})


def verify_token(token: str) -> Optional[Identity]:
    """Verify and decode an identity token, None when it is unusable"""
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm]
        )
    except JWTError:
        return None

    if payload.get("type") != "access":
        return None

    user_id = payload.get("sub")
    email = payload.get("email")
    if not user_id or not email:
        return None

    return Identity(id=user_id, email=email, name=payload.get("name"))
